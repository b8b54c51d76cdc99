"""
mock_partner_api.py — Mock Implementation of the Partner Fulfilment API (REST)

This module provides a simulated partner API for testing the fulfilment workflow.
It exposes a simple FastAPI application that mimics the order creation endpoint.

Simulation Scenarios:
    • Successful order creation
    • Rejected order (HTTP 422), external_ref starting with "#REJECT"
    • Transient outage (HTTP 503) for the first two calls, external_ref starting with "#FLAKY"

Endpoints:
    POST /order — Handles incoming order documents.

Port:
    Default: 8002 (HTTP)
"""

import base64
import logging
import os
import time
import uuid
from typing import Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

app = FastAPI(title="Mock Partner Fulfilment API")
logging.basicConfig(level=logging.INFO)

MOCK_COMPANY_REF_ID = os.environ.get("MOCK_COMPANY_REF_ID", "1001")
MOCK_API_KEY = os.environ.get("MOCK_API_KEY", "mock-key")

FLAKY_FAILURES = 2
_flaky_calls: Dict[str, int] = {}


class Attribute(BaseModel):
    name: str
    value: str


class OrderItem(BaseModel):
    external_ref: str
    quantity: int
    type: int
    print_job_ref: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    textual_product_id: Optional[int] = None
    attributes: List[Attribute] = []


class OrderRequest(BaseModel):
    """
    Represents an order document as the partner API accepts it.
    Only the fields the mock inspects are declared; others are ignored.
    """
    external_ref: str
    company_ref_id: int
    items: List[OrderItem]


def _check_credentials(authorization: Optional[str]):
    expected = base64.b64encode(f"{MOCK_COMPANY_REF_ID}:{MOCK_API_KEY}".encode()).decode()
    if authorization != f"Basic {expected}":
        raise HTTPException(status_code=401, detail={"message": "Invalid credentials"})


@app.post("/order")
def create_order(request: OrderRequest, authorization: Optional[str] = Header(None)):
    """
    Creates an order.

    Args:
        request (OrderRequest): The partner order document.
        authorization (Optional[str]): Basic credential "company_ref_id:api_key".

    Returns:
        dict: Created order with a generated id.

    Raises:
        HTTPException(401): On a wrong credential.
        HTTPException(422): For rejected orders.
        HTTPException(503): For the first calls of a flaky order.
    """
    _check_credentials(authorization)
    logging.info(f"[PARTNER] Order {request.external_ref} with {len(request.items)} item(s) received.")

    if request.external_ref.startswith("#REJECT"):
        logging.warning(f"[PARTNER] Order {request.external_ref} rejected.")
        raise HTTPException(status_code=422, detail={"message": "Unknown textual_product_id"})

    if request.external_ref.startswith("#FLAKY"):
        calls = _flaky_calls.get(request.external_ref, 0) + 1
        _flaky_calls[request.external_ref] = calls
        if calls <= FLAKY_FAILURES:
            logging.warning(f"[PARTNER] Simulating outage for {request.external_ref} (call {calls}).")
            raise HTTPException(status_code=503, detail={"message": "Service unavailable"})

    return {
        "id": f"ord_{uuid.uuid4().hex[:12]}",
        "external_ref": request.external_ref,
        "status": "received",
        "createdAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8002)
