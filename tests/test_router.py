"""Tests for perch.routing.router — ordered resolution and mounting."""

import pytest

from perch.errors import ConfigurationError, MalformedPattern, RouteNotFound
from perch.routing.route import ALL_METHODS, Route
from perch.routing.router import Router


def first(request, response, next):
    response.send("first")


def second(request, response, next):
    response.send("second")


def logger_mw(request, response, next):
    next()


def auth_mw(request, response, next):
    next()


def handlers_of(resolution) -> list:
    return [step.handler for step in resolution.steps]


class TestRegistration:
    def test_direct_registration_returns_route(self) -> None:
        r = Router()
        route = r.get("/monsters", first)
        assert isinstance(route, Route)
        assert route.method == "GET"
        assert route.handlers == (first,)

    def test_decorator_registration(self) -> None:
        r = Router()

        @r.post("/monsters")
        def create(request, response, next):
            response.status(201).end()

        assert create.__name__ == "create"
        assert r.match("POST", "/monsters").route.handlers == (create,)

    def test_multiple_handlers_keep_order(self) -> None:
        r = Router()
        r.put("/monsters/:id", auth_mw, first)
        assert r.match("PUT", "/monsters/1").route.handlers == (auth_mw, first)

    def test_method_is_uppercased(self) -> None:
        r = Router()
        r.route("get", "/x", first)
        assert r.match("GET", "/x").route.method == "GET"

    def test_malformed_pattern_fails_at_registration(self) -> None:
        r = Router()
        with pytest.raises(MalformedPattern):
            r.get("/a/:id/b/:id", first)
        assert r.routes == []

    def test_non_callable_handler_rejected(self) -> None:
        r = Router()
        with pytest.raises(ConfigurationError):
            r.get("/x", "not a handler")  # type: ignore[arg-type]

    def test_use_requires_something(self) -> None:
        with pytest.raises(ConfigurationError):
            Router().use("/x")

    def test_use_rejects_non_callables(self) -> None:
        with pytest.raises(ConfigurationError):
            Router().use("/x", 42)  # type: ignore[arg-type]


class TestMatch:
    def test_root(self) -> None:
        r = Router()
        r.get("/", first)
        assert r.match("GET", "/").path_params == {}

    def test_params(self) -> None:
        r = Router()
        r.get("/monsters/:name", first)
        assert r.match("GET", "/monsters/hydra").path_params == {"name": "hydra"}

    def test_not_found(self) -> None:
        r = Router()
        r.get("/monsters", first)
        with pytest.raises(RouteNotFound) as exc_info:
            r.match("GET", "/dragons")
        assert exc_info.value.status == 404

    def test_method_mismatch_is_not_found(self) -> None:
        r = Router()
        r.get("/monsters", first)
        with pytest.raises(RouteNotFound):
            r.match("DELETE", "/monsters")

    def test_earlier_registration_wins(self) -> None:
        r = Router()
        r.get("/monsters/:id", first)
        r.get("/monsters/:name", second)
        assert r.match("GET", "/monsters/42").route.handlers == (first,)

    def test_literal_registered_after_param_loses(self) -> None:
        r = Router()
        r.get("/monsters/:id", first)
        r.get("/monsters/new", second)
        assert r.match("GET", "/monsters/new").route.handlers == (first,)

    def test_duplicate_pattern_first_wins(self) -> None:
        r = Router()
        r.get("/x", first)
        r.get("/x", second)
        assert r.match("GET", "/x").route.handlers == (first,)

    def test_all_answers_every_method(self) -> None:
        r = Router()
        r.all("/anything", first)
        for method in ("GET", "POST", "DELETE", "PATCH"):
            assert r.match(method, "/anything").route.method == ALL_METHODS

    def test_head_falls_back_to_get(self) -> None:
        r = Router()
        r.get("/monsters", first)
        assert r.match("HEAD", "/monsters").route.handlers == (first,)

    def test_explicit_head_route(self) -> None:
        r = Router()
        r.head("/monsters", second)
        r.get("/monsters", first)
        assert r.match("HEAD", "/monsters").route.handlers == (second,)


class TestMiddlewareResolution:
    def test_global_middleware_before_route_applies(self) -> None:
        r = Router()
        r.use(logger_mw)
        r.get("/monsters", first)
        resolution = r.resolve("GET", "/monsters")
        assert handlers_of(resolution) == [logger_mw, first]
        assert resolution.found

    def test_middleware_after_route_does_not_apply(self) -> None:
        r = Router()
        r.get("/monsters", first)
        r.use(logger_mw)
        assert handlers_of(r.resolve("GET", "/monsters")) == [first]

    def test_middleware_after_route_applies_to_other_paths(self) -> None:
        r = Router()
        r.get("/monsters", first)
        r.use(logger_mw)
        r.get("/dragons", second)
        assert handlers_of(r.resolve("GET", "/dragons")) == [logger_mw, second]

    def test_prefixed_middleware(self) -> None:
        r = Router()
        r.use("/admin", auth_mw)
        r.get("/admin/users", first)
        r.get("/public", second)
        assert handlers_of(r.resolve("GET", "/admin/users")) == [auth_mw, first]
        assert handlers_of(r.resolve("GET", "/public")) == [second]

    def test_prefix_is_segment_wise(self) -> None:
        r = Router()
        r.use("/admin", auth_mw)
        r.get("/administrators", first)
        assert handlers_of(r.resolve("GET", "/administrators")) == [first]

    def test_middleware_applies_to_every_method(self) -> None:
        r = Router()
        r.use(logger_mw)
        r.delete("/x", first)
        assert handlers_of(r.resolve("DELETE", "/x")) == [logger_mw, first]

    def test_only_first_route_contributes(self) -> None:
        r = Router()
        r.use(logger_mw)
        r.get("/x", first)
        r.get("/x", second)
        assert handlers_of(r.resolve("GET", "/x")) == [logger_mw, first]

    def test_no_route_keeps_middleware(self) -> None:
        r = Router()
        r.use(logger_mw)
        r.get("/x", first)
        resolution = r.resolve("GET", "/missing")
        assert handlers_of(resolution) == [logger_mw]
        assert not resolution.found

    def test_empty_table(self) -> None:
        resolution = Router().resolve("GET", "/")
        assert resolution.steps == ()
        assert resolution.route is None

    def test_middleware_prefix_params_and_base_path(self) -> None:
        r = Router()
        r.use("/users/:user", auth_mw)
        r.get("/users/:user/posts", first)
        steps = r.resolve("GET", "/users/ada/posts").steps
        assert steps[0].params == {"user": "ada"}
        assert steps[0].base_path == "/users/ada"
        assert steps[1].base_path == ""


class TestMounting:
    def test_mounted_param_route(self) -> None:
        monsters = Router()
        monsters.get("/:id", first)
        app = Router()
        app.use("/monsters", monsters)

        match = app.match("GET", "/monsters/42")
        assert match.path_params == {"id": "42"}
        assert match.base_path == "/monsters"

    def test_mounted_root_route(self) -> None:
        monsters = Router()
        monsters.get("/", first)
        app = Router()
        app.use("/monsters", monsters)
        assert app.match("GET", "/monsters").route.handlers == (first,)

    def test_prefix_params_merged(self) -> None:
        posts = Router()
        posts.get("/posts/:post", first)
        app = Router()
        app.use("/users/:user", posts)
        assert app.match("GET", "/users/ada/posts/7").path_params == {"user": "ada", "post": "7"}

    def test_nested_mounts(self) -> None:
        inner = Router()
        inner.get("/:id", first)
        middle = Router()
        middle.use("/monsters", inner)
        app = Router()
        app.use("/api", middle)

        match = app.match("GET", "/api/monsters/3")
        assert match.path_params == {"id": "3"}
        assert match.base_path == "/api/monsters"

    def test_child_middleware_included(self) -> None:
        child = Router()
        child.use(auth_mw)
        child.get("/:id", first)
        app = Router()
        app.use(logger_mw)
        app.use("/monsters", child)
        assert handlers_of(app.resolve("GET", "/monsters/1")) == [logger_mw, auth_mw, first]

    def test_unmatched_child_falls_through_to_later_layers(self) -> None:
        child = Router()
        child.get("/:id", first)
        app = Router()
        app.use("/monsters", child)
        app.get("/monsters/:id/edit", second)
        assert handlers_of(app.resolve("GET", "/monsters/1/edit")) == [second]

    def test_overlapping_mounts_first_wins(self) -> None:
        a = Router()
        a.get("/:id", first)
        b = Router()
        b.get("/:id", second)
        app = Router()
        app.use("/m", a)
        app.use("/m", b)
        assert app.match("GET", "/m/1").route.handlers == (first,)

    def test_same_router_at_two_prefixes(self) -> None:
        child = Router()
        child.get("/:id", first)
        app = Router()
        app.use("/monsters", child)
        app.use("/beasts", child)
        assert app.match("GET", "/beasts/9").base_path == "/beasts"

    def test_mount_prefix_not_substring(self) -> None:
        child = Router()
        child.get("/", first)
        app = Router()
        app.use("/monsters", child)
        with pytest.raises(RouteNotFound):
            app.match("GET", "/monstersx")

    def test_cannot_mount_into_itself(self) -> None:
        r = Router()
        with pytest.raises(ConfigurationError):
            r.use("/self", r)

    def test_cannot_create_cycle(self) -> None:
        parent = Router()
        child = Router()
        parent.use("/child", child)
        with pytest.raises(ConfigurationError):
            child.use("/parent", parent)


class TestIntrospection:
    def test_routes_include_mounted_prefix(self) -> None:
        child = Router()
        child.get("/:id", first)
        app = Router()
        app.get("/", second)
        app.use("/monsters", child)

        paths = [(route.method, path) for path, route in app.routes]
        assert paths == [("GET", "/"), ("GET", "/monsters/:id")]

    def test_layers_snapshot(self) -> None:
        r = Router()
        r.use(logger_mw)
        r.get("/", first)
        assert len(r.layers) == 2
