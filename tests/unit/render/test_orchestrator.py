"""Unit tests for the render orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from md2tree.exceptions import TransformError, ValidationError
from md2tree.options.render import RenderOptions
from md2tree.render.math_lines import MathLineFlattener
from md2tree.render.orchestrator import PipelineStage, RenderOrchestrator
from md2tree.render.renderers import RendererRegistry
from md2tree.tree import MarkdownTreeTransformer

from fakes import FakeDiagramRenderer, FakeMathRenderer, FakeVisualization

DIAGRAM_DOC = "# Doc\n- chart\n```mermaid\ngraph TD; A-->B\n```\n"


class FlakyTransformer:
    """Fails on documents mentioning "boom"."""

    def __init__(self):
        self._inner = MarkdownTreeTransformer()

    def transform(self, markdown):
        if "boom" in markdown:
            raise ValueError("cannot build tree")
        return self._inner.transform(markdown)


class MarkupVisualization(FakeVisualization):
    """Visualization that exposes its serialized markup."""

    def __init__(self, markup):
        super().__init__()
        self.markup = markup
        self.replacements = []

    def get_markup(self):
        return self.markup

    def replace_markup(self, markup):
        self.replacements.append(markup)
        self.markup = markup


async def _wait_for(predicate, attempts=50):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def visualization():
    return FakeVisualization()


@pytest.mark.unit
class TestRenderCommit:
    """Test a single render call end to end."""

    async def test_commits_tree_and_fits(self, visualization, blob_store):
        orchestrator = RenderOrchestrator(
            visualization, diagram_renderers={"mermaid": FakeDiagramRenderer()}, blob_store=blob_store
        )
        outcome = await orchestrator.render(DIAGRAM_DOC)

        assert outcome.committed
        assert outcome.stage is PipelineStage.COMMITTING
        assert outcome.blob_count == 1
        assert outcome.root.content == "Doc"
        assert "diagram-wrap" in outcome.text
        # images present: attached once, then again once sizes are known
        assert visualization.roots == [outcome.root, outcome.root]
        assert visualization.fit_calls == 1
        assert orchestrator.stage is PipelineStage.IDLE
        assert orchestrator.committed_blobs.urls == [outcome.text.split('src="')[1].split('"')[0]]

    async def test_plain_document_attached_once(self, visualization):
        outcome = await RenderOrchestrator(visualization).render("# Title\n- a\n- b\n")
        assert [child.content for child in outcome.root.children] == ["a", "b"]
        assert visualization.roots == [outcome.root]

    async def test_math_rendered_before_transform(self, visualization):
        orchestrator = RenderOrchestrator(visualization, math_renderer=FakeMathRenderer())
        outcome = await orchestrator.render("# T\n- value $x^2$\n")
        assert 'class="math-img"' in outcome.root.children[0].content
        assert outcome.blob_count == 0

    async def test_blank_input_skipped(self, visualization):
        orchestrator = RenderOrchestrator(visualization)
        outcome = await orchestrator.render("  \n\n")
        assert outcome.status == "skipped"
        assert outcome.token == 0
        assert visualization.roots == []
        assert orchestrator.content == "  \n\n"

    async def test_image_loader_sees_blob_urls(self, visualization):
        loaded = []

        async def loader(url):
            loaded.append(url)

        orchestrator = RenderOrchestrator(
            visualization, diagram_renderers={"mermaid": FakeDiagramRenderer()}, image_loader=loader
        )
        await orchestrator.render(DIAGRAM_DOC)
        assert loaded == orchestrator.committed_blobs.urls

    def test_registry_and_renderers_are_exclusive(self, visualization):
        with pytest.raises(ValueError):
            RenderOrchestrator(visualization, registry=RendererRegistry(), diagram_renderers={})


@pytest.mark.unit
class TestLastCallWins:
    """Test that only the newest render commits."""

    async def test_superseded_call_is_cancelled(self, visualization, blob_store):
        gate = asyncio.Event()
        renderer = FakeDiagramRenderer(gate=gate)
        orchestrator = RenderOrchestrator(visualization, diagram_renderers={"mermaid": renderer}, blob_store=blob_store)

        slow = asyncio.create_task(orchestrator.render(DIAGRAM_DOC))
        await _wait_for(lambda: renderer.calls)
        fast = await orchestrator.render("# Newer\n- item\n")
        gate.set()
        stale = await slow

        assert fast.committed
        assert stale.status == "cancelled"
        assert stale.stage is PipelineStage.DIAGRAM_EXTRACTING
        assert stale.token < fast.token
        assert [root.content for root in visualization.roots] == ["Newer"]
        assert len(blob_store) == 0

    async def test_stale_during_preload_releases_blobs(self, visualization, blob_store):
        orchestrator = None

        async def loader(url):
            orchestrator.invalidate()

        orchestrator = RenderOrchestrator(
            visualization,
            diagram_renderers={"mermaid": FakeDiagramRenderer()},
            blob_store=blob_store,
            image_loader=loader,
        )
        outcome = await orchestrator.render(DIAGRAM_DOC)

        assert outcome.status == "cancelled"
        assert outcome.stage is PipelineStage.TRANSFORMING
        assert blob_store.created_count == 1
        assert len(blob_store) == 0
        assert visualization.roots == []

    async def test_stale_after_commit_skips_fit(self, visualization, blob_store):
        orchestrator = None

        async def waiter(count):
            orchestrator.invalidate()

        orchestrator = RenderOrchestrator(visualization, blob_store=blob_store, frame_waiter=waiter)
        outcome = await orchestrator.render("# A\n")

        assert outcome.committed
        assert visualization.roots == [outcome.root]
        assert visualization.fit_calls == 0


@pytest.mark.unit
class TestBlobLifecycle:
    """Test that committed blobs are revoked at the right time."""

    async def test_next_commit_revokes_previous_blobs(self, visualization, blob_store):
        orchestrator = RenderOrchestrator(
            visualization, diagram_renderers={"mermaid": FakeDiagramRenderer()}, blob_store=blob_store
        )
        await orchestrator.render(DIAGRAM_DOC)
        first = orchestrator.committed_blobs.handles[0]

        await orchestrator.render("# Plain\n")
        assert not blob_store.is_live(first)
        assert len(orchestrator.committed_blobs) == 0

    async def test_clear_revokes_committed(self, visualization, blob_store):
        orchestrator = RenderOrchestrator(
            visualization, diagram_renderers={"mermaid": FakeDiagramRenderer()}, blob_store=blob_store
        )
        await orchestrator.render(DIAGRAM_DOC)
        assert orchestrator.clear() == 1
        assert len(blob_store) == 0
        assert orchestrator.clear() == 0

    async def test_transform_error_keeps_previous_render(self, visualization, blob_store):
        orchestrator = RenderOrchestrator(
            visualization,
            transformer=FlakyTransformer(),
            diagram_renderers={"mermaid": FakeDiagramRenderer()},
            blob_store=blob_store,
        )
        await orchestrator.render(DIAGRAM_DOC)
        committed = orchestrator.committed_blobs.handles
        attached = len(visualization.roots)

        with pytest.raises(TransformError) as exc_info:
            await orchestrator.render("# boom\n```mermaid\nA\n```\n")

        assert exc_info.value.transform_name == "FlakyTransformer"
        assert isinstance(exc_info.value.original_error, ValueError)
        assert orchestrator.committed_blobs.handles == committed
        assert all(blob_store.is_live(handle) for handle in committed)
        assert blob_store.created_count == 2
        assert len(blob_store) == 1
        assert len(visualization.roots) == attached
        assert orchestrator.stage is PipelineStage.IDLE


@pytest.mark.unit
class TestHooksAndSeams:
    """Test callbacks and session seams."""

    async def test_first_render_hook_fires_once(self, visualization):
        calls = []
        orchestrator = RenderOrchestrator(visualization, on_first_render=lambda: calls.append("ready"))
        await orchestrator.render("")
        await orchestrator.render("# A\n")
        await orchestrator.render("# B\n")
        assert calls == ["ready"]

    async def test_async_first_render_hook(self, visualization):
        calls = []

        async def hook():
            calls.append("ready")

        await RenderOrchestrator(visualization, on_first_render=hook).render("# A\n")
        assert calls == ["ready"]

    async def test_session_seams(self, visualization):
        seams = RenderOrchestrator(visualization).session_seams()
        outcome = await seams.load_content("# Loaded\n")
        assert outcome.committed
        assert seams.get_content() == "# Loaded\n"

    async def test_progress_events(self, visualization):
        events = []
        orchestrator = RenderOrchestrator(
            visualization, diagram_renderers={"mermaid": FakeDiagramRenderer()}, progress_callback=events.append
        )
        outcome = await orchestrator.render(DIAGRAM_DOC)

        assert [event.event_type for event in events] == ["started"] + ["stage"] * 5 + ["finished"]
        assert [event.metadata.get("stage") for event in events[1:6]] == [
            "normalizing",
            "math_extracting",
            "diagram_extracting",
            "transforming",
            "committing",
        ]
        assert [event.current for event in events[1:6]] == [1, 2, 3, 4, 5]
        assert all(event.metadata["token"] == outcome.token for event in events)
        assert events[-1].metadata["blobs"] == 1

    async def test_failing_progress_callback_is_ignored(self, visualization, caplog):
        def explode(event):
            raise RuntimeError("callback bug")

        outcome = await RenderOrchestrator(visualization, progress_callback=explode).render("# A\n")
        assert outcome.committed
        assert "Progress callback failed" in caplog.text

    async def test_layout_fixes_applied_to_markup_hosts(self):
        visualization = MarkupVisualization("<svg><foreignObject><p>node</p></foreignObject></svg>")
        await RenderOrchestrator(visualization).render("# A\n")
        assert len(visualization.replacements) == 1
        assert "<p>" not in visualization.replacements[0]
        assert "node" in visualization.replacements[0]



@pytest.mark.unit
class TestMathLineFlattening:
    """Test the flattening stage built from render options."""

    async def test_flattens_lines_with_rasterizer(self, visualization, blob_store):
        Image = pytest.importorskip("PIL.Image")

        def rasterize(svg, width, height):
            return Image.new("RGBA", (width, height), (0, 0, 255, 255))

        orchestrator = RenderOrchestrator(
            visualization,
            math_renderer=FakeMathRenderer(),
            render_options=RenderOptions(flatten_math_lines=True),
            blob_store=blob_store,
            svg_rasterizer=rasterize,
        )
        outcome = await orchestrator.render("- energy $E=mc^2$ here\n")

        assert outcome.committed
        assert 'class="math-line-img"' in outcome.text
        assert 'class="math-img"' not in outcome.text
        assert outcome.blob_count == 1
        assert len(blob_store) == 1

    def test_flattening_without_rasterizer_rejected(self, visualization):
        with pytest.raises(ValidationError) as exc_info:
            RenderOrchestrator(visualization, render_options=RenderOptions(flatten_math_lines=True))
        assert exc_info.value.parameter_name == "svg_rasterizer"

    def test_explicit_flattener_needs_no_rasterizer(self, visualization, blob_store):
        pytest.importorskip("PIL")
        flattener = MathLineFlattener(blob_store)
        orchestrator = RenderOrchestrator(
            visualization, render_options=RenderOptions(flatten_math_lines=True), math_line_flattener=flattener
        )
        assert orchestrator._flattener is flattener


@pytest.mark.unit
class TestPipelineStage:
    """Test that the stage returns to idle on every exit path."""

    async def test_idle_after_stale_preload(self, visualization):
        orchestrator = None

        async def loader(url):
            orchestrator.invalidate()

        orchestrator = RenderOrchestrator(
            visualization, diagram_renderers={"mermaid": FakeDiagramRenderer()}, image_loader=loader
        )
        outcome = await orchestrator.render(DIAGRAM_DOC)

        assert outcome.stage is PipelineStage.TRANSFORMING
        assert orchestrator.stage is PipelineStage.IDLE

    async def test_idle_after_stale_settle(self, visualization):
        orchestrator = None

        async def waiter(count):
            orchestrator.invalidate()

        orchestrator = RenderOrchestrator(visualization, frame_waiter=waiter)
        await orchestrator.render("# A\n")
        assert orchestrator.stage is PipelineStage.IDLE

    async def test_idle_after_transform_error(self, visualization):
        orchestrator = RenderOrchestrator(visualization, transformer=FlakyTransformer())
        with pytest.raises(TransformError):
            await orchestrator.render("# boom\n")
        assert orchestrator.stage is PipelineStage.IDLE

    async def test_superseded_call_leaves_newer_stage(self, visualization):
        gates = []

        class GatedRenderer(FakeDiagramRenderer):
            async def render(self, source, context):
                gate = asyncio.Event()
                gates.append(gate)
                await gate.wait()
                return await super().render(source, context)

        orchestrator = RenderOrchestrator(visualization, diagram_renderers={"mermaid": GatedRenderer()})
        older = asyncio.create_task(orchestrator.render(DIAGRAM_DOC))
        await _wait_for(lambda: len(gates) == 1)
        newer = asyncio.create_task(orchestrator.render(DIAGRAM_DOC))
        await _wait_for(lambda: len(gates) == 2)

        gates[0].set()
        assert (await older).status == "cancelled"
        assert orchestrator.stage is PipelineStage.DIAGRAM_EXTRACTING

        gates[1].set()
        assert (await newer).committed
        assert orchestrator.stage is PipelineStage.IDLE
