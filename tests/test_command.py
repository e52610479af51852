from __future__ import annotations

import asyncio

import pytest

from remote_webdriver.command import ROOT_CONTEXT, Command, ElementContext
from remote_webdriver.errors import (
    CommandCancelledError,
    CommandDeadlockError,
    NoElementContextError,
    WebDriverError,
)


def _nested_page(session):
    first_span = session.element("span-1", text="first inner")
    second_span = session.element("span-2", text="second inner")
    first_div = session.element("div-1", text="first outer", children={"span": [first_span]})
    second_div = session.element("div-2", text="second outer", children={"span": [second_span]})
    session.page["div"] = [first_div, second_div]
    return first_div, second_div


@pytest.mark.asyncio
async def test_construction_is_deferred_until_awaited(session) -> None:
    command = Command(session).get("http://example.com")
    await asyncio.sleep(0.01)

    assert session.events == []
    assert not command.done()
    with pytest.raises(asyncio.InvalidStateError):
        command.result()

    await command

    assert session.event_names() == ["get"]
    assert command.done()
    assert command.result() is None


@pytest.mark.asyncio
async def test_each_step_starts_after_its_parent_settled(session) -> None:
    session.delays = {"get": 0.03}

    title = await Command(session).get("http://example.com").get_page_title()

    assert title == "Fake page"
    assert session.event_names() == ["get", "title"]
    get_time, title_time = (stamp for _, stamp in session.events)
    assert title_time >= get_time


@pytest.mark.asyncio
async def test_async_callbacks_run_strictly_in_chain_order(session) -> None:
    order: list[str] = []

    def step(name: str, delay: float):
        async def _callback(value, link):
            order.append(f"start {name}")
            await asyncio.sleep(delay)
            order.append(f"end {name}")
            return name

        return _callback

    result = await Command(session).then(step("one", 0.03)).then(step("two", 0.0))

    assert result == "two"
    assert order == ["start one", "end one", "start two", "end two"]


@pytest.mark.asyncio
async def test_then_without_callback_passes_value_through(session) -> None:
    assert await Command(session).then(lambda value, link: 5).then() == 5


@pytest.mark.asyncio
async def test_returned_awaitables_and_commands_are_flattened(session) -> None:
    async def later(value, link):
        await asyncio.sleep(0)
        return 7

    assert await Command(session).then(later) == 7
    assert await Command(session).then(lambda value, link: Command(session).get_page_title()) == "Fake page"


@pytest.mark.asyncio
async def test_single_context_yields_scalar_result(session) -> None:
    session.page["h1"] = [session.element("h1", text="Heading")]

    text = await Command(session).find_by_tag_name("h1").get_visible_text()

    assert text == "Heading"


@pytest.mark.asyncio
async def test_multiple_context_yields_list_in_context_order(session) -> None:
    session.page["p"] = [
        session.element("a", text="A", delay=0.03),
        session.element("b", text="B"),
    ]

    texts = await Command(session).find_all_by_tag_name("p").get_visible_text()

    assert texts == ["A", "B"]
    assert session.event_names()[-2:] == ["text:b", "text:a"]


@pytest.mark.asyncio
async def test_find_all_with_one_match_still_yields_list(session) -> None:
    session.page["p"] = [session.element("only", text="Only")]

    assert await Command(session).find_all_by_tag_name("p").get_visible_text() == ["Only"]


@pytest.mark.asyncio
async def test_find_all_sets_multiple_context_one_level_deeper(session) -> None:
    first_div, second_div = _nested_page(session)

    command = Command(session).find_all_by_tag_name("div")
    await command

    assert command.context.elements == (first_div, second_div)
    assert not command.context.single
    assert command.context.depth == 1


@pytest.mark.asyncio
async def test_get_active_element_sets_single_context(session) -> None:
    session.active = session.element("focus", text="Focused")

    command = Command(session).get_active_element()

    assert await command.get_visible_text() == "Focused"
    assert command.context.single


@pytest.mark.asyncio
async def test_find_searches_within_single_context(session) -> None:
    _nested_page(session)

    text = await Command(session).find_by_tag_name("div").find_by_tag_name("span").get_visible_text()

    assert text == "first inner"


@pytest.mark.asyncio
async def test_find_over_multiple_context_searches_every_element(session) -> None:
    _nested_page(session)
    divs = Command(session).find_all_by_tag_name("div")

    assert await divs.find_by_tag_name("span").get_visible_text() == ["first inner", "second inner"]
    assert await divs.find_all_by_tag_name("span").get_visible_text() == ["first inner", "second inner"]


@pytest.mark.asyncio
async def test_end_pops_element_filters(session) -> None:
    _nested_page(session)
    spans = Command(session).find_all_by_tag_name("div").find_all_by_tag_name("span")

    assert await spans.get_visible_text() == ["first inner", "second inner"]
    assert await spans.end().get_visible_text() == ["first outer", "second outer"]
    assert await spans.then(lambda value, link: value).end().get_visible_text() == [
        "first outer",
        "second outer",
    ]

    popped = spans.end(2)
    await popped
    assert popped.context is ROOT_CONTEXT
    with pytest.raises(NoElementContextError):
        await popped.get_visible_text()


@pytest.mark.asyncio
async def test_end_past_the_root_clamps_to_whole_document(session) -> None:
    _nested_page(session)

    popped = Command(session).find_all_by_tag_name("div").end(5)
    await popped

    assert popped.context is ROOT_CONTEXT
    assert await popped.find_by_tag_name("div").get_visible_text() == "first outer"


@pytest.mark.asyncio
async def test_siblings_run_concurrently_and_share_the_parent(session) -> None:
    session.delays = {"title": 0.05}
    page = Command(session).get("http://example.com")

    title, url = await asyncio.gather(page.get_page_title(), page.get_current_url())

    assert (title, url) == ("Fake page", "http://example.com")
    assert session.event_names() == ["get", "url", "title"]


@pytest.mark.asyncio
async def test_element_operation_without_context_fails(session) -> None:
    with pytest.raises(NoElementContextError):
        await Command(session).get_visible_text()


@pytest.mark.asyncio
async def test_empty_find_all_leaves_nothing_to_operate_on(session) -> None:
    missing = Command(session).find_all_by_tag_name("table")

    assert await missing == []
    with pytest.raises(NoElementContextError):
        await missing.click()
    with pytest.raises(NoElementContextError):
        await missing.find_by_tag_name("td")


@pytest.mark.asyncio
async def test_first_failure_in_context_order_is_raised_after_all_ran(session) -> None:
    stale = WebDriverError("stale", name="StaleElementReference", status=10)
    hidden = WebDriverError("hidden", name="ElementNotVisible", status=11)
    first = session.element("a", delay=0.03, error=stale)
    second = session.element("b", error=hidden)
    third = session.element("c")
    session.page["button"] = [first, second, third]

    with pytest.raises(WebDriverError) as info:
        await Command(session).find_all_by_tag_name("button").click()

    assert info.value is stale
    assert third.clicks == 1
    assert {"click:a", "click:b", "click:c"} <= set(session.event_names())


@pytest.mark.asyncio
async def test_failure_skips_initializers_until_handled(session) -> None:
    seen: list[str] = []

    command = Command(session).find_by_id("missing").then(lambda value, link: seen.append("ran"))

    with pytest.raises(WebDriverError) as info:
        await command
    assert info.value.name == "NoSuchElement"
    assert seen == []


@pytest.mark.asyncio
async def test_errback_heals_and_rebinds_to_last_good_context(session) -> None:
    session.page["h1"] = [session.element("h1", text="Heading")]

    healed = (
        Command(session)
        .find_by_tag_name("h1")
        .find_by_class_name("missing")
        .catch(lambda error, link: error.name)
    )

    assert await healed == "NoSuchElement"
    assert await healed.get_visible_text() == "Heading"


@pytest.mark.asyncio
async def test_then_errback_receives_error_and_link(session) -> None:
    def recover(error, link):
        assert link.context is ROOT_CONTEXT
        return f"recovered from {error.kind}"

    result = await Command(session).get_visible_text().then(lambda value, link: "unused", recover)

    assert result == "recovered from NoElementContext"


@pytest.mark.asyncio
async def test_finally_passes_value_and_error_through(session) -> None:
    seen: list[object] = []

    assert await Command(session).then(lambda value, link: 42).finally_(lambda outcome, link: seen.append(outcome)) == 42

    with pytest.raises(WebDriverError):
        await Command(session).find_by_id("missing").finally_(lambda outcome, link: seen.append(outcome))

    assert seen[0] == 42
    assert isinstance(seen[1], WebDriverError)


@pytest.mark.asyncio
async def test_sleep_delays_the_next_step(session) -> None:
    await Command(session).get("http://example.com").sleep(0.02).get_page_title()

    get_time, title_time = (stamp for _, stamp in session.events)
    assert title_time - get_time >= 0.015


@pytest.mark.asyncio
async def test_cancel_before_start_fails_without_running(session) -> None:
    command = Command(session).get("http://example.com")
    command.cancel()
    child = command.get_page_title()

    with pytest.raises(CommandCancelledError):
        await command
    with pytest.raises(CommandCancelledError):
        await child
    assert session.events == []


@pytest.mark.asyncio
async def test_cancel_fails_dependents_but_not_siblings(session) -> None:
    session.delays = {"get": 0.05}
    page = Command(session).get("http://example.com")
    title = page.get_page_title()
    after_title = title.then(lambda value, link: "unreachable")
    url = page.get_current_url()

    pending = asyncio.gather(after_title, url, return_exceptions=True)
    await asyncio.sleep(0.01)
    title.cancel()
    dependent_result, sibling_result = await pending

    assert isinstance(dependent_result, CommandCancelledError)
    assert sibling_result == "http://example.com"
    with pytest.raises(CommandCancelledError):
        await title
    assert "title" not in session.event_names()


@pytest.mark.asyncio
async def test_cancel_abandons_remote_operation_in_flight(session) -> None:
    session.delays = {"title": 0.05}
    title = Command(session).get_page_title()
    after_title = title.then(lambda value, link: "unreachable")

    pending = asyncio.gather(title, after_title, return_exceptions=True)
    await asyncio.sleep(0.01)
    title.cancel()
    results = await pending
    await asyncio.sleep(0.06)

    assert [type(result) for result in results] == [CommandCancelledError, CommandCancelledError]
    assert "title" not in session.event_names()


@pytest.mark.asyncio
async def test_cancel_after_settlement_has_no_effect(session) -> None:
    command = Command(session).then(lambda value, link: "kept")
    assert await command == "kept"

    command.cancel()
    command.cancel()

    assert await command == "kept"
    assert command.result() == "kept"


@pytest.mark.asyncio
async def test_cancellation_cannot_be_healed_by_errbacks(session) -> None:
    command = Command(session).get("http://example.com")
    command.cancel()

    with pytest.raises(CommandCancelledError):
        await command.catch(lambda error, link: "healed")


@pytest.mark.asyncio
async def test_returning_self_is_reported_as_deadlock(session) -> None:
    with pytest.raises(CommandDeadlockError):
        await Command(session).then(lambda value, link: link.command)


@pytest.mark.asyncio
async def test_returning_a_descendant_is_reported_as_deadlock(session) -> None:
    descendants = []

    def continue_from_self(value, link):
        descendants.append(link.command.get_page_title())
        return descendants[-1]

    with pytest.raises(CommandDeadlockError):
        await Command(session).then(continue_from_self)

    await asyncio.sleep(0.01)
    assert not descendants[0].done()
    assert "title" not in session.event_names()


@pytest.mark.asyncio
async def test_callback_may_continue_from_the_parent(session) -> None:
    session.page["h1"] = [session.element("h1", text="Heading")]

    def read_heading(value, link):
        return link.command.parent.find_by_tag_name("h1").get_visible_text()

    assert await Command(session).get("http://example.com").then(read_heading) == "Heading"


@pytest.mark.asyncio
async def test_set_context_last_call_wins(session) -> None:
    first = session.element("a")
    second = session.element("b")

    def pick(value, link):
        link.set_context([first])
        link.set_context(second)
        return "picked"

    command = Command(session).then(pick)
    await command

    assert command.context == ElementContext((second,), single=True, depth=1)


@pytest.mark.asyncio
async def test_set_context_keeps_depth_of_explicit_context(session) -> None:
    element = session.element("a")
    command = Command(session).then(
        lambda value, link: link.set_context(ElementContext((element,), single=True, depth=5))
    )
    await command

    assert command.context.depth == 5


@pytest.mark.asyncio
async def test_set_context_after_settlement_is_ignored(session) -> None:
    links = []
    command = Command(session).then(lambda value, link: links.append(link))
    await command

    links[0].set_context(session.element("late"))

    assert command.context is ROOT_CONTEXT


@pytest.mark.asyncio
async def test_failed_command_keeps_inherited_context(session) -> None:
    element = session.element("a")

    def boom(value, link):
        link.set_context(element)
        raise ValueError("boom")

    command = Command(session).then(boom)
    recovered = command.catch(lambda error, link: str(error))

    assert await recovered == "boom"
    assert command.context is ROOT_CONTEXT
    assert recovered.context is ROOT_CONTEXT


def test_single_context_requires_exactly_one_element(session) -> None:
    with pytest.raises(ValueError):
        ElementContext((session.element("a"), session.element("b")), single=True)


@pytest.mark.asyncio
async def test_mouse_operations_fan_out_over_context(session) -> None:
    session.page["button"] = [session.element("a"), session.element("b")]
    buttons = Command(session).find_all_by_tag_name("button")

    await buttons.move_mouse_to(None, 5, 10)
    assert sorted(session.mouse) == [("a", 5, 10), ("b", 5, 10)]

    session.mouse.clear()
    await buttons.move_mouse_to(session.element("c"))
    assert session.mouse == [("c", None, None)]

    session.mouse.clear()
    await Command(session).move_mouse_to(None, 1, 2)
    assert session.mouse == [(None, 1, 2)]


@pytest.mark.asyncio
async def test_touch_operations_fan_out_over_context(session) -> None:
    session.page["button"] = [session.element("a"), session.element("b")]
    buttons = Command(session).find_all_by_tag_name("button")

    await buttons.double_tap()
    await buttons.long_tap()
    await buttons.touch_scroll(None, 0, 40)
    await Command(session).touch_scroll(x_offset=5)

    assert session.requests == [
        ("POST", "touch/doubleclick", {"element": "a"}),
        ("POST", "touch/doubleclick", {"element": "b"}),
        ("POST", "touch/longclick", {"element": "a"}),
        ("POST", "touch/longclick", {"element": "b"}),
        ("POST", "touch/scroll", {"xoffset": 0, "yoffset": 40, "element": "a"}),
        ("POST", "touch/scroll", {"xoffset": 0, "yoffset": 40, "element": "b"}),
        ("POST", "touch/scroll", {"xoffset": 5, "yoffset": 0}),
    ]


@pytest.mark.asyncio
async def test_wait_for_deleted_restores_find_timeout(session) -> None:
    await Command(session).set_find_timeout(2)

    assert await Command(session).wait_for_deleted_by_css_selector(".gone") is None
    assert await session.get_find_timeout() == 2
    timeouts = [data for _, path, data in session.requests if path == "timeouts"]
    assert timeouts == [
        {"type": "implicit", "ms": 2000},
        {"type": "implicit", "ms": 0},
        {"type": "implicit", "ms": 2000},
    ]


@pytest.mark.asyncio
async def test_wait_for_deleted_times_out_while_element_remains(session) -> None:
    session.page[".spinner"] = [session.element("spinner")]

    with pytest.raises(WebDriverError) as info:
        await Command(session).wait_for_deleted_by_css_selector(".spinner")

    assert info.value.name == "Timeout"
