"""Tests for perch.server.chain: ordered execution of resolved steps."""

import asyncio
import logging
import threading

import pytest

from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.route import Step
from perch.server.chain import Continuation, run_chain


def _request(method: str = "GET", path: str = "/") -> Request:
    return Request(method=method, path=path)


async def _run(*handlers, error_handlers=None, debug=False, request=None) -> tuple[Request, Response]:
    request = request or _request()
    response = Response()
    steps = [Step(handler) for handler in handlers]
    await run_chain(steps, request, response, error_handlers=error_handlers, debug=debug)
    return request, response


class TestOrdering:
    async def test_runs_in_order(self) -> None:
        calls: list[str] = []

        def first(request, response, next):
            calls.append("first")
            next()

        def second(request, response, next):
            calls.append("second")
            response.send("done")

        _, response = await _run(first, second)
        assert calls == ["first", "second"]
        assert response.text == "done"

    async def test_async_handlers(self) -> None:
        async def first(request, response, next):
            await asyncio.sleep(0)
            request.state["user"] = "ada"
            next()

        async def second(request, response, next):
            response.send(request.state["user"])

        _, response = await _run(first, second)
        assert response.text == "ada"

    async def test_state_flows_forward(self) -> None:
        def attach(request, response, next):
            request.state["seen"] = ["attach"]
            next()

        def read(request, response, next):
            request.state["seen"].append("read")
            response.json(request.state["seen"])

        _, response = await _run(attach, read)
        assert response.body == b'["attach","read"]'

    async def test_params_and_base_path_per_step(self) -> None:
        seen: list[tuple[dict, str]] = []

        def record(request, response, next):
            seen.append((dict(request.params), request.base_path))
            next()

        def finish(request, response, next):
            seen.append((dict(request.params), request.base_path))
            response.end()

        steps = [
            Step(record, {"user": "ada"}, "/users/ada"),
            Step(finish, {"user": "ada", "post": "7"}, ""),
        ]
        await run_chain(steps, _request(path="/users/ada/posts/7"), Response())
        assert seen == [({"user": "ada"}, "/users/ada"), ({"user": "ada", "post": "7"}, "")]


class TestSendIsTerminal:
    async def test_send_stops_chain(self) -> None:
        calls: list[str] = []

        def sender(request, response, next):
            response.send("early")

        def never(request, response, next):
            calls.append("never")

        _, response = await _run(sender, never)
        assert response.text == "early"
        assert calls == []

    async def test_send_then_next_stops_chain(self) -> None:
        calls: list[str] = []

        def sender(request, response, next):
            response.send("early")
            next()

        def never(request, response, next):
            calls.append("never")

        _, response = await _run(sender, never)
        assert calls == []
        assert response.text == "early"

    async def test_returned_value_is_sent(self) -> None:
        def handler(request, response, next):
            return {"height": 3}

        _, response = await _run(handler)
        assert response.body == b'{"height":3}'

    async def test_returned_tuple_sets_status(self) -> None:
        def handler(request, response, next):
            return "created", 201

        _, response = await _run(handler)
        assert response.status_code == 201
        assert response.text == "created"


class TestContinuation:
    async def test_next_from_later_callback(self) -> None:
        def deferred(request, response, next):
            asyncio.get_running_loop().call_later(0.01, next)

        def finish(request, response, next):
            response.send("after")

        _, response = await _run(deferred, finish)
        assert response.text == "after"

    async def test_next_from_another_thread(self) -> None:
        def threaded(request, response, next):
            threading.Timer(0.01, next).start()

        def finish(request, response, next):
            response.send("threaded")

        _, response = await _run(threaded, finish)
        assert response.text == "threaded"

    async def test_send_from_later_task(self) -> None:
        def deferred(request, response, next):
            async def later():
                await asyncio.sleep(0.01)
                response.send("late")

            request.state["task"] = asyncio.ensure_future(later())

        request, response = await _run(deferred)
        assert response.text == "late"

    async def test_send_from_timer_thread(self) -> None:
        def threaded(request, response, next):
            threading.Timer(0.01, lambda: response.send("threaded")).start()

        _, response = await asyncio.wait_for(_run(threaded), timeout=1)
        assert response.text == "threaded"

    async def test_chain_returns_while_sender_keeps_running(self) -> None:
        release = asyncio.Event()

        async def send_then_linger(request, response, next):
            request.state["task"] = asyncio.current_task()
            response.send("early")
            await release.wait()

        request, response = await asyncio.wait_for(_run(send_then_linger), timeout=1)
        assert response.text == "early"
        assert not request.state["task"].done()
        release.set()
        await request.state["task"]

    async def test_neither_send_nor_next_hangs(self) -> None:
        def stuck(request, response, next):
            pass

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(_run(stuck), timeout=0.05)

    async def test_double_next_is_ignored(self) -> None:
        calls: list[str] = []

        def twice(request, response, next):
            next()
            next()

        def finish(request, response, next):
            calls.append("finish")
            response.end()

        await _run(twice, finish)
        assert calls == ["finish"]

    async def test_next_rejects_non_exception(self) -> None:
        loop = asyncio.get_running_loop()
        cont = Continuation(loop, "handler")
        with pytest.raises(TypeError):
            cont("route")  # type: ignore[arg-type]
        assert not cont.called


class TestErrorPath:
    async def test_raise_gives_default_500(self, caplog: pytest.LogCaptureFixture) -> None:
        def boom(request, response, next):
            raise ValueError("kaboom")

        with caplog.at_level(logging.ERROR, logger="perch.server"):
            _, response = await _run(boom)
        assert response.status_code == 500
        assert response.text == "Internal Server Error"
        assert "kaboom" in caplog.text

    async def test_debug_500_includes_exception(self) -> None:
        def boom(request, response, next):
            raise ValueError("kaboom")

        _, response = await _run(boom, debug=True)
        assert response.status_code == 500
        assert "ValueError: kaboom" in response.text

    async def test_next_with_error(self) -> None:
        calls: list[str] = []

        def fail(request, response, next):
            next(ValueError("passed along"))

        def skipped(request, response, next):
            calls.append("skipped")

        _, response = await _run(fail, skipped)
        assert response.status_code == 500
        assert calls == []

    async def test_http_error_status(self) -> None:
        def forbidden(request, response, next):
            raise HTTPError(403, "Forbidden", (("X-Reason", "policy"),))

        _, response = await _run(forbidden)
        assert response.status_code == 403
        assert response.text == "Forbidden"
        assert response.get_header("x-reason") == "policy"

    async def test_error_handler_by_exception(self) -> None:
        def boom(request, response, next):
            raise KeyError("hydra")

        def on_key_error(request, response, exc):
            response.status(404).json({"missing": exc.args[0]})

        _, response = await _run(boom, error_handlers={KeyError: on_key_error})
        assert response.status_code == 404
        assert response.body == b'{"missing":"hydra"}'

    async def test_error_handler_by_status(self) -> None:
        def boom(request, response, next):
            raise RuntimeError("x")

        def on_500(request, response, exc):
            response.send("custom")

        _, response = await _run(boom, error_handlers={500: on_500})
        assert response.status_code == 500
        assert response.text == "custom"

    async def test_error_handler_by_base_class(self) -> None:
        def boom(request, response, next):
            raise FileNotFoundError("x")

        def on_os_error(request, response, exc):
            response.send("os")

        _, response = await _run(boom, error_handlers={OSError: on_os_error})
        assert response.text == "os"

    async def test_error_handler_return_value(self) -> None:
        def boom(request, response, next):
            raise RuntimeError("x")

        def on_500(request):
            return {"ok": False}

        _, response = await _run(boom, error_handlers={500: on_500})
        assert response.body == b'{"ok":false}'

    async def test_failing_error_handler_falls_back(self) -> None:
        def boom(request, response, next):
            raise RuntimeError("x")

        def broken(request, response, exc):
            raise ValueError("handler broke")

        _, response = await _run(boom, error_handlers={500: broken})
        assert response.status_code == 500
        assert response.text == "Internal Server Error"

    async def test_error_handler_that_does_not_send(self) -> None:
        def boom(request, response, next):
            raise RuntimeError("x")

        def quiet(request, response, exc):
            pass

        _, response = await _run(boom, error_handlers={500: quiet})
        assert response.sent
        assert response.status_code == 500

    async def test_raise_after_send_only_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        handled: list[BaseException] = []

        def send_then_raise(request, response, next):
            response.send("ok")
            raise RuntimeError("too late")

        def on_500(request, response, exc):
            handled.append(exc)

        with caplog.at_level(logging.ERROR, logger="perch.server"):
            _, response = await _run(send_then_raise, error_handlers={500: on_500})
        assert response.text == "ok"
        assert response.status_code == 200
        assert handled == []
        assert "too late" in caplog.text

    async def test_double_send_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        def double(request, response, next):
            response.send("one")
            response.send("two")

        with caplog.at_level(logging.WARNING, logger="perch.server"):
            _, response = await _run(double)
        assert response.text == "one"
        assert "Duplicate send" in caplog.text

    async def test_raise_after_send_and_await_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        async def send_then_raise_later(request, response, next):
            request.state["task"] = asyncio.current_task()
            response.send("ok")
            await asyncio.sleep(0)
            raise RuntimeError("after the response")

        with caplog.at_level(logging.ERROR, logger="perch.server"):
            request, response = await _run(send_then_raise_later)
            await asyncio.wait([request.state["task"]])
            await asyncio.sleep(0)
        assert response.status_code == 200
        assert response.text == "ok"
        assert "after the response" in caplog.text


class TestExhaustion:
    async def test_empty_chain_is_404(self) -> None:
        _, response = await _run(request=_request("GET", "/dragonx"))
        assert response.status_code == 404
        assert response.text == "Cannot GET /dragonx"

    async def test_next_past_last_step_is_404(self) -> None:
        def passthrough(request, response, next):
            next()

        _, response = await _run(passthrough)
        assert response.status_code == 404

    async def test_404_handler(self) -> None:
        def on_404(request, response, exc):
            response.json({"error": "not found", "path": request.path})

        _, response = await _run(
            request=_request("GET", "/nowhere"), error_handlers={404: on_404}
        )
        assert response.status_code == 404
        assert response.body == b'{"error":"not found","path":"/nowhere"}'
