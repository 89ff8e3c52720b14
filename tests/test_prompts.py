from __future__ import annotations

from contextkit import prompts
from contextkit.tools import ToolManifest
from contextkit.tools.names import generate_tool_name
from contextkit.types import Attachment, ToolInvocation


def test_history_summary_prompt_strips_summary() -> None:
    text = prompts.history_summary_prompt("\n  we talked  \n")

    assert text.startswith("<chat_history_summary>")
    assert "<summary>we talked</summary>" in text
    assert text.endswith("</chat_history_summary>")


def test_tool_system_role_lists_apis(weather_manifest: ToolManifest) -> None:
    text = prompts.tool_system_role([weather_manifest], generate_tool_name)

    assert text.startswith('<plugins description="The plugins you can use below">')
    assert '<api identifier="weather____getForecast">Get a multi-day forecast.</api>' in text
    assert text.endswith("</plugins>")


def test_tool_system_role_empty() -> None:
    assert prompts.tool_system_role([], generate_tool_name) == ""


def test_describe_tool_call_and_result() -> None:
    call = ToolInvocation(id="c1", identifier="weather", api_name="getCurrent", arguments='{"city":"Oslo"}')

    assert prompts.describe_tool_call(call) == '[Called tool weather.getCurrent with arguments {"city":"Oslo"}]'
    assert prompts.describe_tool_result(call, "sunny") == "[Result of weather.getCurrent]\nsunny"
    assert prompts.describe_tool_result(None, "raw") == "[Result of tool]\nraw"


def test_files_info() -> None:
    files = [
        (Attachment("f1", name="a.md", file_type="text/markdown"), "# A", "https://cdn/a.md"),
        (Attachment("f2"), "plain", None),
    ]

    text = prompts.files_info(files)

    assert '<file name="a.md" type="text/markdown" url="https://cdn/a.md">\n# A\n</file>' in text
    assert '<file name="f2">\nplain\n</file>' in text
    assert "url=" not in prompts.files_info(files, include_url=False)


def test_inbox_guide_constants() -> None:
    assert prompts.INBOX_SESSION_ID == "inbox"
    assert prompts.INBOX_GUIDE_SYSTEM_ROLE
