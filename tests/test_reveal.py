"""Tests for the typed message reveal"""
import asyncio

from orchestrator.reveal import TypedReveal


class TestTypedReveal:
    def test_steps_rebuild_text(self):
        text = "Data quality is  Good.\nReady to go"
        assert "".join(TypedReveal(text, lambda p: None).steps()) == text

    def test_reveal_emits_each_word(self):
        pieces = []

        async def run():
            return await TypedReveal("hello big world", pieces.append, delay=0).start()

        assert asyncio.run(run()) == "hello big world"
        assert pieces == ["hello ", "big ", "world"]

    def test_cancel_stops_reveal(self):
        pieces = []

        async def run():
            reveal = TypedReveal("one two three four", pieces.append, delay=0.05)
            task = reveal.start()
            await asyncio.sleep(0)
            reveal.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            return reveal

        reveal = asyncio.run(run())
        assert reveal.done
        assert reveal.revealed != "one two three four"
