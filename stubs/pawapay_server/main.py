import copy
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

DEFAULT_AVAILABILITY: List[Dict[str, Any]] = [
    {
        "country": "KEN",
        "correspondents": [
            {
                "correspondent": "MPESA_KEN",
                "operationTypes": [
                    {"operationType": "DEPOSIT", "status": "OPERATIONAL"},
                    {"operationType": "PAYOUT", "status": "OPERATIONAL"},
                ],
            }
        ],
    },
    {
        "country": "GHA",
        "correspondents": [
            {
                "correspondent": "MTN_MOMO_GHA",
                "operationTypes": [
                    {"operationType": "DEPOSIT", "status": "CLOSED"},
                    {"operationType": "PAYOUT", "status": "DELAYED"},
                ],
            }
        ],
    },
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_mock_app() -> FastAPI:
    """Stub of the PawaPay API that deduplicates mutations by Idempotency-Key"""
    app = FastAPI(title="Mock PawaPay Server", version="1.0.0")
    app.state.availability = copy.deepcopy(DEFAULT_AVAILABILITY)
    app.state.transactions = {}  # idempotency key -> stored transaction
    app.state.requests = []  # (method, path, idempotency key) for every call

    @app.middleware("http")
    async def record_requests(request: Request, call_next):
        app.state.requests.append((request.method, request.url.path, request.headers.get("idempotency-key")))
        if not request.headers.get("authorization", "").startswith("Bearer "):
            return JSONResponse({"errorMessage": "Unauthorized"}, status_code=401)
        return await call_next(request)

    def accept(request_key: str | None, id_field: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not request_key or request_key != body.get(id_field):
            raise HTTPException(status_code=400, detail="Idempotency-Key must equal " + id_field)
        stored = app.state.transactions.get(request_key)
        if stored is None:
            stored = {**body, "status": "ACCEPTED", "created": _now()}
            app.state.transactions[request_key] = stored
            return {id_field: request_key, "status": "ACCEPTED", "created": stored["created"]}
        return {id_field: request_key, "status": "DUPLICATE_IGNORED", "created": stored["created"]}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/availability")
    def availability(country: str | None = None):
        data = app.state.availability
        return [c for c in data if country is None or c["country"] == country]

    @app.get("/predict-correspondent")
    def predict_correspondent(msisdn: str, country: str):
        if msisdn.startswith("254"):
            return {"country": "KEN", "correspondent": "MPESA_KEN", "msisdn": msisdn}
        raise HTTPException(status_code=404, detail="No correspondent for msisdn")

    @app.get("/active-configuration")
    def active_configuration():
        return {"merchantId": "mock-merchant", "countries": [c["country"] for c in app.state.availability]}

    @app.get("/configuration/limits")
    def limits(mmoId: str, country: str):
        return {"mmoId": mmoId, "country": country, "currency": "KES", "minAmount": 1, "maxAmount": 150000}

    @app.post("/deposits")
    async def deposits(request: Request):
        return accept(request.headers.get("idempotency-key"), "depositId", await request.json())

    @app.post("/payouts")
    async def payouts(request: Request):
        return accept(request.headers.get("idempotency-key"), "payoutId", await request.json())

    @app.post("/bulk-payouts")
    async def bulk_payouts(request: Request):
        return accept(request.headers.get("idempotency-key"), "bulkPayoutId", await request.json())

    @app.post("/v1/widget/sessions")
    async def widget_sessions(request: Request):
        body = await request.json()
        accept(request.headers.get("idempotency-key"), "depositId", body)
        return {"redirectUrl": f"https://paywith.pawapay.io/?token={body['depositId']}"}

    @app.get("/deposits/{transaction_id}")
    @app.get("/payouts/{transaction_id}")
    def status(transaction_id: str):
        stored = app.state.transactions.get(transaction_id)
        if stored is None:
            return []
        return [stored]

    @app.post("/deposits/{transaction_id}/callback/resend")
    @app.post("/payouts/{transaction_id}/callback/resend")
    def resend(transaction_id: str):
        if transaction_id not in app.state.transactions:
            raise HTTPException(status_code=404, detail="Not found")
        return {"status": "ACCEPTED"}

    return app


app = create_mock_app()
