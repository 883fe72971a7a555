import asyncio

import pytest

from booth.capture.pipeline import CapturePipeline, Stage
from booth.config import CaptureConfig
from conftest import FakeCamera, FakeQr, FakeRenderer, FakeShortener, MemoryStore


def make_pipeline(camera=None, renderer=None, store=None, shortener=None, qr=None, clock=lambda: 0.0):
	camera = camera or FakeCamera()
	return CapturePipeline(
		camera_frame=camera.latest_rgb,
		renderer=renderer or FakeRenderer(),
		store=store or MemoryStore(),
		shortener=shortener or FakeShortener(),
		qr=qr or FakeQr(),
		kiosk_id="booth-7",
		capture_cfg=CaptureConfig(width=108, height=192),
		clock=clock,
	)


def run(pipeline, on_composed=None):
	return asyncio.run(pipeline.run(on_composed))


def test_successful_run_shares_short_url():
	store, qr = MemoryStore(), FakeQr()
	pipeline = make_pipeline(store=store, qr=qr)
	composed = []
	outcome = run(pipeline, lambda: composed.append(True))

	assert outcome.ok and outcome.error is None
	share = outcome.share
	assert share.short_url == "https://sho.rt/abc123"
	assert share.stored_url.startswith("https://cdn.example.com/photos/1970-01-01/booth-7-00-00-00-")
	assert share.object_path in store.objects
	assert qr.texts == ["https://sho.rt/abc123"]
	assert composed == [True]

	results = pipeline.results
	assert results.share is share
	assert results.artifact.width == 108 and results.artifact.height == 192
	assert results.artifact.jpeg.startswith(b"\xff\xd8")
	assert results.artifact.data_url.startswith("data:image/jpeg;base64,")
	assert not results.is_uploading
	assert not pipeline.busy


def test_shorten_failure_falls_back_to_stored_url(caplog):
	qr = FakeQr()
	pipeline = make_pipeline(shortener=FakeShortener(fail=True), qr=qr)
	with caplog.at_level("WARNING", logger="booth.capture.pipeline"):
		outcome = run(pipeline)
	assert outcome.ok
	assert outcome.share.short_url == outcome.share.stored_url
	assert not outcome.share.shortened
	assert qr.texts == [outcome.share.stored_url]
	assert "shortening failed" in caplog.text


def test_store_failure_is_fatal_and_tagged():
	shortener, qr = FakeShortener(), FakeQr()
	pipeline = make_pipeline(store=MemoryStore(fail=True), shortener=shortener, qr=qr)
	outcome = run(pipeline)
	assert not outcome.ok
	assert outcome.stage == Stage.STORE.value
	assert "store" in str(outcome.error)
	assert "network unreachable" in str(outcome.error)
	assert outcome.share is None and pipeline.results.share is None
	# Later stages never started.
	assert shortener.calls == [] and qr.texts == []


def test_qr_failure_is_fatal():
	outcome = run(make_pipeline(qr=FakeQr(fail=True)))
	assert outcome.stage == "qr"
	assert str(outcome.error).startswith("Capture failed at qr stage")


@pytest.mark.parametrize(
	"camera,renderer",
	[
		(FakeCamera(), FakeRenderer(missing=True)),
		(type("NoFrame", (FakeCamera,), {"latest_rgb": lambda self: None})(), FakeRenderer()),
	],
)
def test_missing_surface_fails_compose(camera, renderer):
	store = MemoryStore()
	composed = []
	pipeline = make_pipeline(camera=camera, renderer=renderer, store=store)
	outcome = run(pipeline, lambda: composed.append(True))
	assert outcome.stage == "compose"
	assert composed == []
	assert pipeline.results.artifact is None
	assert store.objects == {}


def test_discard_releases_results():
	pipeline = make_pipeline()
	run(pipeline)
	pipeline.discard()
	assert pipeline.results.artifact is None
	assert pipeline.results.share is None


def test_second_run_while_busy_is_refused():
	class SlowStore(MemoryStore):
		async def store(self, data, object_name, content_type="image/jpeg"):
			await asyncio.sleep(0.05)
			return await super().store(data, object_name, content_type)

	async def scenario():
		pipeline = make_pipeline(store=SlowStore())
		first = asyncio.create_task(pipeline.run())
		await asyncio.sleep(0.01)
		assert pipeline.busy
		with pytest.raises(RuntimeError):
			await pipeline.run()
		return await first

	assert asyncio.run(scenario()).ok
