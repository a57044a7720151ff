"""Monsters — an in-memory CRUD API built from ordered routes and middleware.

Demonstrates a mounted router, ``next()``-style middleware, path and query
parameters, and a store handed to handlers through ``app.provide()`` instead
of module-level state.

Run:
    cd examples/monsters && python app.py
"""

import threading

from perch import App, Router
from perch.middleware import json_body, request_logger


class MonsterStore:
    """Monster records keyed by name. Safe to share across requests."""

    def __init__(self, initial: dict[str, dict] | None = None) -> None:
        self._lock = threading.Lock()
        self._monsters: dict[str, dict] = dict(initial or {})

    def all(self) -> dict[str, dict]:
        with self._lock:
            return dict(self._monsters)

    def get(self, name: str) -> dict | None:
        with self._lock:
            return self._monsters.get(name)

    def put(self, name: str, record: dict) -> bool:
        """Store *record*; True if it replaced an existing monster."""
        with self._lock:
            existed = name in self._monsters
            self._monsters[name] = record
            return existed

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._monsters.pop(name, None) is not None


monsters = Router(name="monsters")


def load_monster(request, response, next):
    """Attach the monster named in the path, or answer 404."""
    store: MonsterStore = request.state["store"]
    monster = store.get(request.params["name"])
    if monster is None:
        response.status(404).json({"error": f"no monster named {request.params['name']!r}"})
        return
    request.state["monster"] = monster
    next()


@monsters.get("/")
def list_monsters(request, response, next):
    response.json(request.state["store"].all())


@monsters.get("/:name", load_monster)
def show_monster(request, response, next):
    response.json(request.state["monster"])


@monsters.put("/:name")
def put_monster(request, response, next):
    """Create or replace a monster from the query string or a JSON body."""
    record = request.parsed_body if request.parsed_body else request.query.to_dict()
    replaced = request.state["store"].put(request.params["name"], record)
    response.status(200 if replaced else 201).json(record)


@monsters.delete("/:name")
def delete_monster(request, response, next):
    if not request.state["store"].remove(request.params["name"]):
        response.send_status(404)
        return
    response.status(204).end()


def create_app() -> App:
    app = App()
    app.provide("store", MonsterStore({"hydra": {"height": 3}}))
    app.use(request_logger())
    app.use(json_body())
    app.use("/monsters", monsters)

    @app.get("/")
    def index(request, response, next):
        response.send("<h1>Monsters</h1>")

    @app.error(404)
    def not_found(request, response, exc):
        response.json({"error": "not found", "path": request.path})

    return app


app = create_app()


if __name__ == "__main__":
    app.listen(3000, lambda: print("Monsters listening on http://127.0.0.1:3000"))
