"""
send_test_webhook.py — Sends a signed sample order webhook

Usage:
    python tools/send_test_webhook.py <webhook-url> <signing-key> [shop-domain]

Example:
    python tools/send_test_webhook.py http://localhost:8000/webhooks/shopify/acme_orders secret acme.myshopify.com
"""

import json
import sys
from datetime import datetime, timezone

import httpx

from fulfilment_service.verification import compute_signature


def sample_order() -> dict:
    return {
        "id": 999000111,
        "name": "#1001",
        "order_number": 1001,
        "email": "customer@example.com",
        "processed_at": datetime.now(timezone.utc).isoformat(),
        "line_items": [
            {
                "id": 12345,
                "quantity": 1,
                "title": "LABEL",
                "sku": "LABEL-001",
                "variant_id": 555,
                "properties": [
                    {"name": "Top line", "value": "HELLO"},
                    {"name": "Middle line", "value": "FROM"},
                    {"name": "Bottom line", "value": "THE SHOP"},
                ],
            }
        ],
        "shipping_address": {
            "address1": "1 Test St", "address2": "", "city": "Lincoln",
            "province": "Lincs", "zip": "LN1 1AA", "country_code": "GB",
            "name": "Jane Doe", "phone": "+44 7777 000000",
        },
    }


def signed_request(secret: str, shop_domain: str):
    """Body bytes and headers of a signed sample order webhook."""
    body = json.dumps(sample_order()).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Hmac-Sha256": compute_signature(body, secret),
        "X-Shopify-Shop-Domain": shop_domain,
    }
    return body, headers


def send(url: str, secret: str, shop_domain: str = "example.myshopify.com") -> httpx.Response:
    body, headers = signed_request(secret, shop_domain)
    with httpx.Client(timeout=10.0) as client:
        return client.post(url, content=body, headers=headers)


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    response = send(*sys.argv[1:4])
    print(response.status_code, response.text)
