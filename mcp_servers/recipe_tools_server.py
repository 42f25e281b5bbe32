"""Recipe book tools served over MCP stdio.

Every tool is a thin wrapper over the Recipe Vault HTTP API. Configure it with
``API_BASE_URL``, ``API_KEY`` and optionally ``USER_EMAIL`` in the environment.
"""
from __future__ import annotations

import os
from typing import Any

import httpx
from mcp.server.fastmcp import FastMCP

DEFAULT_API_BASE_URL = "http://127.0.0.1:3000"
REQUEST_TIMEOUT_SECONDS = 30.0

mcp = FastMCP("recipes")


class RecipeApiError(Exception):
    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(message)


def map_status_error(status_code: int, body: str) -> RecipeApiError:
    message = body.strip() or httpx.codes.get_reason_phrase(status_code)
    if status_code == 401:
        return RecipeApiError("auth", "API authentication failed. Check API_KEY configuration.")
    if status_code == 404:
        return RecipeApiError("not_found", f"Not found: {message}")
    if status_code == 409:
        return RecipeApiError("conflict", f"Conflict: {message}")
    if status_code in (400, 422):
        return RecipeApiError("invalid_params", f"Invalid parameters: {message}")
    if status_code >= 500:
        return RecipeApiError("server", f"API server error: {message}")
    return RecipeApiError("unexpected", f"Unexpected response: {status_code} - {message}")


class RecipeApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        user_email: str | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {}
        if api_key:
            headers["X-API-Key"] = api_key
        if user_email:
            headers["X-User-Email"] = user_email
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def list_recipes(self) -> list[dict[str, Any]]:
        return self._request("GET", "/api/recipes")

    def get_recipe(self, recipe_id: str) -> dict[str, Any]:
        return self._request("GET", f"/api/recipes/{recipe_id}")

    def create_recipe(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/api/recipes", json=payload)

    def update_recipe(self, recipe_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/api/recipes/{recipe_id}", json=payload)

    def delete_recipe(self, recipe_id: str) -> None:
        self._request("DELETE", f"/api/recipes/{recipe_id}", expect_body=False)

    def _request(self, method: str, path: str, *, json: Any = None, expect_body: bool = True) -> Any:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.TimeoutException as ex:
            raise RecipeApiError("timeout", "API request timed out") from ex
        except httpx.ConnectError as ex:
            raise RecipeApiError(
                "connect", f"Failed to connect to API server at {self.base_url}: {ex}"
            ) from ex
        except httpx.HTTPError as ex:
            raise RecipeApiError("request", f"API request failed: {ex}") from ex

        if response.is_error:
            raise map_status_error(response.status_code, response.text)
        if not expect_body:
            return None
        try:
            return response.json()
        except ValueError as ex:
            raise RecipeApiError("invalid_response", f"Failed to parse response: {ex}") from ex


def _recipe_summary(recipe: dict[str, Any]) -> dict[str, Any]:
    summary = {"recipe_id": recipe.get("id"), "title": recipe.get("title")}
    for key in ("description", "prep_time_minutes", "cook_time_minutes", "servings", "difficulty"):
        if recipe.get(key) is not None:
            summary[key] = recipe[key]
    return summary


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


_api: RecipeApiClient | None = None


def get_api() -> RecipeApiClient:
    global _api
    if _api is None:
        _api = RecipeApiClient(
            os.environ.get("API_BASE_URL", DEFAULT_API_BASE_URL),
            os.environ.get("API_KEY") or None,
            os.environ.get("USER_EMAIL") or None,
        )
    return _api


@mcp.tool(description="List all recipes in the book. Returns the recipe_id, title and description of each recipe.")
def list_recipes() -> dict[str, Any]:
    return {"recipes": [_recipe_summary(r) for r in get_api().list_recipes()]}


@mcp.tool(description="Get a recipe with its ingredients and steps. For your own reference; the user does not see this.")
def get_recipe(recipe_id: str) -> dict[str, Any]:
    return get_api().get_recipe(recipe_id)


@mcp.tool(
    description=(
        "Create a new recipe. Ingredients are objects with name, quantity, unit and notes; "
        "steps are objects with instruction, duration_minutes, temperature_value and temperature_unit."
    )
)
def create_recipe(
    title: str,
    description: str,
    servings: int | None = None,
    prep_time_minutes: int | None = None,
    cook_time_minutes: int | None = None,
    difficulty: int | None = None,
    ingredients: list[dict[str, Any]] | None = None,
    steps: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if not title.strip():
        raise ValueError("title must not be empty")
    payload = _without_none({
        "title": title,
        "description": description,
        "servings": servings,
        "prep_time_minutes": prep_time_minutes,
        "cook_time_minutes": cook_time_minutes,
        "difficulty": difficulty,
    })
    payload["ingredients"] = ingredients or []
    payload["steps"] = steps or []
    return get_api().create_recipe(payload)


@mcp.tool(description="Update fields of an existing recipe. Only the fields given are changed; difficulty is 1 (easy) to 5 (hard).")
def update_recipe(
    recipe_id: str,
    title: str | None = None,
    description: str | None = None,
    servings: int | None = None,
    prep_time_minutes: int | None = None,
    cook_time_minutes: int | None = None,
    difficulty: int | None = None,
    ingredients: list[dict[str, Any]] | None = None,
    steps: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if difficulty is not None and not 1 <= difficulty <= 5:
        raise ValueError("difficulty must be between 1 and 5")
    payload = _without_none({
        "title": title,
        "description": description,
        "servings": servings,
        "prep_time_minutes": prep_time_minutes,
        "cook_time_minutes": cook_time_minutes,
        "difficulty": difficulty,
        "ingredients": ingredients,
        "steps": steps,
    })
    return get_api().update_recipe(recipe_id, payload)


@mcp.tool(description="Delete a recipe permanently.")
def delete_recipe(recipe_id: str) -> dict[str, Any]:
    get_api().delete_recipe(recipe_id)
    return {"status": "success", "message": f"Recipe {recipe_id} deleted"}


if __name__ == "__main__":
    mcp.run()
