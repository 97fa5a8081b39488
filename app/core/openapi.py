"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- API Key security scheme (``X-API-Key``) with per-path exemptions
- The 401/429 responses every keyed operation can produce
"""

from __future__ import annotations

from typing import Any, Dict, Iterable

from fastapi import FastAPI

_ADMISSION_RESPONSES: Dict[str, Dict[str, Any]] = {
    "401": {"description": "API Key is missing."},
    "429": {
        "description": (
            "Too many requests from this address, or the API key's daily quota "
            "is exhausted."
        )
    },
}


def apply_openapi_customizations(app: FastAPI, *, exempt_paths: Iterable[str] = ()) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects components.securitySchemes for API Key auth (header ``X-API-Key``)
    - Marks all operations as requiring API Key by default, then exempts
      ``exempt_paths`` by setting ``security: []``
    - Documents the admission responses on keyed operations
    """

    original_openapi = app.openapi
    exempt = set(exempt_paths)

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Provide your API key via the X-API-Key header.",
            },
        )

        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Forecast",
                "description": "Quota-metered demo endpoints.",
            },
            {
                "name": "Health",
                "description": "Liveness checks.",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                if path in exempt:
                    method_obj["security"] = []
                else:
                    responses = method_obj.setdefault("responses", {})
                    for code, response in _ADMISSION_RESPONSES.items():
                        responses.setdefault(code, response)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
