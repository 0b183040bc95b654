"""Unit tests for math extraction."""

from __future__ import annotations

import base64

import pytest

from md2tree.exceptions import RendererUnavailableError
from md2tree.options.render import RenderOptions
from md2tree.render.generation import Generation, GenerationCounter
from md2tree.render.math import build_math_markup, extract_math, should_render_inline_math

from fakes import FakeMathRenderer


async def _extract(text, renderer=None, generation=None, **kwargs):
    renderer = renderer if renderer is not None else FakeMathRenderer()
    return await extract_math(text, generation or Generation.always_current(), renderer=renderer, **kwargs)


@pytest.mark.unit
class TestShouldRenderInlineMath:
    """Test the money-versus-TeX filter for ``$...$`` spans."""

    @pytest.mark.parametrize("expr", ["100", "1,000.50", "5 usd", "100 to 200", "10-20", "3.5k", " ", ""])
    def test_amounts_rejected(self, expr):
        assert should_render_inline_math(expr) is False

    @pytest.mark.parametrize("expr", ["x", "x^2", r"\alpha", "a_i", "1=1", "{2}"])
    def test_tex_accepted(self, expr):
        assert should_render_inline_math(expr) is True

    def test_digits_and_symbols_only_rejected(self):
        assert should_render_inline_math("2 + 3") is False


@pytest.mark.unit
class TestBuildMathMarkup:
    """Test sizing of rendered math images."""

    def test_em_units_resolved_against_base_font(self):
        svg = '<svg width="2ex" height="1ex" viewBox="0 0 10 5"></svg>'
        markup = build_math_markup(svg, False, RenderOptions())
        assert markup.startswith('<img class="math-img" alt="math" src="data:image/svg+xml;base64,')
        assert 'width="16" height="8" style="width:16px;height:8px;"' in markup

    def test_block_class_and_viewbox_fallback(self):
        markup = build_math_markup('<svg viewBox="0 0 50 10"></svg>', True, RenderOptions())
        assert 'class="math-img math-block"' in markup
        assert 'width="50" height="10"' in markup

    def test_default_size(self):
        options = RenderOptions(default_math_width=77, default_math_height=11)
        markup = build_math_markup("<svg></svg>", False, options)
        assert 'width="77" height="11"' in markup

    def test_data_url_holds_pixel_sized_svg(self):
        markup = build_math_markup('<svg width="2ex" height="1ex"></svg>', False, RenderOptions())
        encoded = markup.split("base64,", 1)[1].split('"', 1)[0]
        assert 'width="16" height="8"' in base64.b64decode(encoded).decode("utf-8")


@pytest.mark.unit
class TestExtractMath:
    """Test replacing math spans with images."""

    async def test_inline_math_rendered(self):
        renderer = FakeMathRenderer()
        result = await _extract("Energy $E=mc^2$ here", renderer)
        assert result.text.startswith('Energy <img class="math-img" alt="math"')
        assert result.text.endswith(" here")
        assert renderer.calls == [("E=mc^2", False)]
        assert result.blob_handles == ()

    async def test_currency_left_alone(self):
        renderer = FakeMathRenderer()
        text = "It costs $100 to $200 total"
        result = await _extract(text, renderer)
        assert result.text == text
        assert renderer.calls == []

    async def test_escaped_dollars(self):
        text = r"Literal \$x\$ stays"
        result = await _extract(text)
        assert result.text == text

    async def test_inline_code_skipped(self):
        renderer = FakeMathRenderer()
        result = await _extract("`$x$` and $y$", renderer)
        assert result.text.startswith("`$x$` and <img")
        assert renderer.calls == [("y", False)]

    async def test_unmatched_backtick_is_literal(self):
        renderer = FakeMathRenderer()
        await _extract("a ` b $y$", renderer)
        assert renderer.calls == [("y", False)]

    async def test_unmatched_backtick_does_not_pair_with_fence(self):
        renderer = FakeMathRenderer()
        text = "Use `a and $x$\n```\ncode $z$\n```\nthen $y^2$\n"
        result = await _extract(text, renderer)
        assert renderer.calls == [("x", False), ("y^2", False)]
        assert "code $z$" in result.text

    async def test_inline_code_ends_at_blank_line(self):
        renderer = FakeMathRenderer()
        await _extract("a ` b\n\n$y$ ` c", renderer)
        assert renderer.calls == [("y", False)]

    async def test_fenced_code_skipped(self):
        renderer = FakeMathRenderer()
        text = "```python\nprice = '$x$'\n$$y$$\n```\n"
        result = await _extract(text, renderer)
        assert result.text == text
        assert renderer.calls == []

    async def test_inline_math_does_not_span_lines(self):
        renderer = FakeMathRenderer()
        text = "$a\nb$"
        result = await _extract(text, renderer)
        assert result.text == text

    async def test_block_math_in_list_item_attaches_to_item(self):
        renderer = FakeMathRenderer()
        text = "- item\n  $$\n  E=mc^2\n  $$\n- next"
        result = await _extract(text, renderer)
        lines = result.text.split("\n")
        assert lines[0].startswith('- item <img class="math-img math-block"')
        assert lines[1] == "- next"
        assert renderer.calls == [("E=mc^2", True)]

    async def test_block_math_outside_list_becomes_item(self):
        result = await _extract("Text\n\n$$a+b$$\n")
        assert result.text.startswith('Text\n\n- <img class="math-img math-block"')
        assert result.text.endswith(">\n")

    async def test_block_math_sharing_a_line_stays_inline(self):
        result = await _extract("See $$a$$ here")
        assert result.text.startswith('See <img class="math-img math-block"')
        assert result.text.endswith(" here")

    async def test_unterminated_block_kept(self):
        result = await _extract("$$ a + b")
        assert result.text == "$$ a + b"

    async def test_failed_and_empty_renders_kept(self, caplog):
        renderer = FakeMathRenderer(fail_on=("x",), empty_on=("y",))
        text = "$x$ and $y$ and $z$"
        result = await _extract(text, renderer)
        assert result.text.startswith("$x$ and $y$ and <img")
        assert "Math render failed" in caplog.text

    async def test_async_renderer(self):
        class AsyncRenderer(FakeMathRenderer):
            async def tex_to_svg(self, expr, *, display):
                return super().tex_to_svg(expr, display=display)

        result = await _extract("$x$", AsyncRenderer())
        assert result.text.startswith("<img")

    async def test_no_renderer_is_passthrough(self):
        result = await extract_math("$x$", Generation.always_current(), renderer=None)
        assert result.text == "$x$"

    async def test_stale_generation_returns_none(self):
        counter = GenerationCounter()
        gen = counter.next()
        counter.invalidate()
        assert await _extract("$x$", generation=gen) is None

    async def test_stale_without_math_still_returns_text(self):
        counter = GenerationCounter()
        gen = counter.next()
        counter.invalidate()
        result = await _extract("no math", generation=gen)
        assert result.text == "no math"

    async def test_unavailable_renderer_passes_rest_through(self):
        class Unavailable(FakeMathRenderer):
            def tex_to_svg(self, expr, *, display):
                self.calls.append((expr, display))
                raise RendererUnavailableError("tex")

        renderer = Unavailable()
        text = "$x$ and $y$"
        result = await _extract(text, renderer)
        assert result.text == text
        assert renderer.calls == [("x", False)]
