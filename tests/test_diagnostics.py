"""
Tests for runtime diagnostics output.
"""

import io

from marshaller_rt.diagnostics import dump_heap, dump_registry, dump_stats, trace


class TestDiagnostics:
    """Tests for tagged stderr output"""

    def test_trace_gated_by_level(self, capsys):
        trace(1, 2, "hidden")
        trace(2, 2, "shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "[MARSHAL:TRACE] shown" in err

    def test_dump_stats(self, dispatcher):
        heap = dispatcher.heap
        heap.free(heap.alloc(4))
        heap.alloc(8)
        stream = io.StringIO()
        dump_stats(heap, stream)
        text = stream.getvalue()
        assert "[MARSHAL:STATS] total_allocations: 2, total_bytes: 12" in text
        assert "[MARSHAL:STATS] total_frees: 1" in text
        assert "[MARSHAL:STATS] live_blocks: 1, live_bytes: 8" in text

    def test_dump_heap(self, dispatcher):
        address = dispatcher.heap.alloc(24)
        stream = io.StringIO()
        dump_heap(dispatcher.heap, stream)
        assert f"[MARSHAL:HEAP] {address:#x} size=24" in stream.getvalue()

    def test_dump_registry(self, dispatcher, shapes):
        stream = io.StringIO()
        dump_registry(dispatcher.registry, stream)
        lines = stream.getvalue().splitlines()
        assert lines[1:] == [
            "[MARSHAL:REGISTRY] struct Point size=8",
            "[MARSHAL:REGISTRY] Point size=8",
            "[MARSHAL:REGISTRY] struct Line size=16",
            "[MARSHAL:REGISTRY] struct Polygon size=40",
        ]
