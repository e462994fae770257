import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
from pybreaker import CircuitBreaker

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import ExtractionSource
from recipe_capture.domain.ports import RecipeRepositoryPort
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.ocr.cloud_extractor import CloudTextExtractor
from recipe_capture.infrastructure.persistence.settings_store import InMemorySettingsStore
from recipe_capture.services.capture_orchestrator import CaptureOrchestrator
from recipe_capture.services.hybrid_extraction_service import HybridExtractionService
from tests.mocks.mock_extractors import MockTextExtractor, outcome
from tests.mocks.mock_recipe_parser import MockRecipeParser
from tests.mocks.mock_repository import MockRecipeRepository

SCENARIO_TEXT = "Title\nIngredients:\n- 2 cups flour"


class ExplodingRecipeParser(MockRecipeParser):
    async def parse_recipe(self, text):
        raise RuntimeError("kaboom")


class SlowTextExtractor(MockTextExtractor):
    async def extract_text(self, image_ref):
        self.extract_calls.append(image_ref)
        await asyncio.sleep(10)
        return outcome("too late", 0.99, ExtractionSource.ON_DEVICE)


@pytest.fixture
def on_device() -> MockTextExtractor:
    return MockTextExtractor(outcome(SCENARIO_TEXT, 0.95, ExtractionSource.ON_DEVICE))


@pytest.fixture
def cloud() -> MockTextExtractor:
    return MockTextExtractor(Result.failure("cloud offline", ErrorKind.EXTRACTION))


@pytest.fixture
def parser() -> MockRecipeParser:
    return MockRecipeParser()


@pytest.fixture
def repository() -> MockRecipeRepository:
    return MockRecipeRepository()


def build_orchestrator(on_device, cloud, parser, repository) -> CaptureOrchestrator:
    extraction = HybridExtractionService(
        on_device=on_device,
        cloud=cloud,
        settings_port=InMemorySettingsStore("hybrid"),
        confidence_threshold=0.70,
    )
    return CaptureOrchestrator(extraction, parser, repository, max_concurrency=2)


@pytest.fixture
def orchestrator(on_device, cloud, parser, repository) -> CaptureOrchestrator:
    return build_orchestrator(on_device, cloud, parser, repository)


async def test_confident_capture_is_structured_and_saved_once(orchestrator, repository, cloud):
    # Act
    result = await orchestrator.execute("file://a.jpg")

    # Assert
    assert result.is_success
    assert result.value.title == "Title"
    assert result.value.image_path == "file://a.jpg"
    assert repository.saved == [result.value]
    assert cloud.extract_calls == []


async def test_empty_image_ref_touches_no_service(orchestrator, on_device, repository):
    result = await orchestrator.execute("")

    assert result.is_failure
    assert result.error == "Image URI is required"
    assert result.kind == ErrorKind.INPUT_VALIDATION
    assert on_device.availability_calls == 0
    assert on_device.extract_calls == []
    assert repository.saved == []


async def test_on_device_failure_recovers_through_cloud(parser, repository):
    on_device = MockTextExtractor(Result.failure("sensor error", ErrorKind.EXTRACTION))
    cloud = MockTextExtractor(outcome("text", 0.6, ExtractionSource.CLOUD))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.is_success
    assert orchestrator.extraction_service.get_last_used_source() == ExtractionSource.CLOUD
    assert (await orchestrator.get_last_ocr_confidence()).value == 0.6


async def test_unavailable_extraction_never_extracts(parser, repository):
    on_device = MockTextExtractor(available=Result.success(False))
    cloud = MockTextExtractor(available=Result.success(False))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.SERVICE_UNAVAILABLE
    assert result.error == "OCR service is not available"
    assert on_device.extract_calls == []
    assert cloud.extract_calls == []


async def test_preview_mode_never_saves(orchestrator, repository):
    result = await orchestrator.execute("file://a.jpg", persist=False)

    assert result.is_success
    assert repository.saved == []


async def test_extraction_failure_is_prefixed(parser, repository):
    on_device = MockTextExtractor(Result.failure("sensor error", ErrorKind.EXTRACTION))
    cloud = MockTextExtractor(Result.failure("HTTP 500", ErrorKind.EXTRACTION))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.EXTRACTION
    assert result.error.startswith("OCR failed: ")
    assert "sensor error" in result.error and "HTTP 500" in result.error


async def test_blank_text_is_reported_as_no_text(cloud, parser, repository):
    on_device = MockTextExtractor(outcome("   ", 0.9, ExtractionSource.ON_DEVICE))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.NO_TEXT_EXTRACTED
    assert result.error == "No text could be extracted from the image"
    assert parser.validated_texts == []


async def test_non_recipe_text_is_not_parsed(on_device, cloud, repository):
    parser = MockRecipeParser(is_recipe=Result.success(False))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.TEXT_NOT_RECIPE
    assert result.error == "The extracted text does not appear to be a recipe"
    assert parser.parsed_texts == []


async def test_parsing_failure_is_prefixed(on_device, cloud, repository):
    parser = MockRecipeParser(failures={SCENARIO_TEXT: "model confused"})
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.PARSING
    assert result.error == "Recipe parsing failed: model confused"
    assert repository.saved == []


async def test_save_failure_is_prefixed(on_device, cloud, parser):
    orchestrator = build_orchestrator(on_device, cloud, parser, MockRecipeRepository(error="disk full"))

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.PERSISTENCE
    assert result.error == "Failed to save recipe: disk full"


async def test_unexpected_exception_becomes_a_stage_tagged_failure(on_device, cloud, repository):
    orchestrator = build_orchestrator(on_device, cloud, ExplodingRecipeParser(), repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.kind == ErrorKind.UNEXPECTED
    assert result.error == "Unexpected error while parsing: kaboom"


async def test_preset_cancel_event_stops_before_any_work(orchestrator, on_device, repository):
    cancel_event = asyncio.Event()
    cancel_event.set()

    result = await orchestrator.execute("file://a.jpg", cancel_event=cancel_event)

    assert result.kind == ErrorKind.CANCELLED
    assert on_device.extract_calls == []
    assert repository.saved == []


async def test_cancel_event_abandons_in_flight_extraction(cloud, parser, repository):
    slow = SlowTextExtractor()
    orchestrator = build_orchestrator(slow, cloud, parser, repository)
    cancel_event = asyncio.Event()

    task = asyncio.create_task(orchestrator.execute("file://a.jpg", cancel_event=cancel_event))
    await asyncio.sleep(0.05)
    cancel_event.set()
    result = await asyncio.wait_for(task, timeout=1)

    assert slow.extract_calls == ["file://a.jpg"]
    assert result.kind == ErrorKind.CANCELLED
    assert repository.saved == []


async def test_cancel_event_stops_in_flight_cloud_request(parser, repository, png_image, httpx_mock):
    finished = asyncio.Event()

    async def slow_cloud(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.6)
        finished.set()
        return httpx.Response(200, json={"success": True, "extractedText": SCENARIO_TEXT})

    httpx_mock.add_response(method="GET", url="http://ocr.test/api/health")
    httpx_mock.add_callback(slow_cloud, method="POST", url="http://ocr.test/api/ocr/extract")
    on_device = MockTextExtractor(outcome("blurry", 0.4, ExtractionSource.ON_DEVICE))
    cloud = CloudTextExtractor(base_url="http://ocr.test/api", breaker=CircuitBreaker())
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)
    cancel_event = asyncio.Event()

    task = asyncio.create_task(orchestrator.execute(png_image, cancel_event=cancel_event))
    await asyncio.sleep(0.1)
    cancel_event.set()
    result = await asyncio.wait_for(task, timeout=1)
    await asyncio.sleep(0.7)

    assert result.kind == ErrorKind.CANCELLED
    assert not finished.is_set()
    assert repository.saved == []


async def test_task_cancellation_surfaces_as_cancelled_failure(cloud, parser, repository):
    orchestrator = build_orchestrator(SlowTextExtractor(), cloud, parser, repository)

    task = asyncio.create_task(orchestrator.execute("file://a.jpg"))
    await asyncio.sleep(0.05)
    task.cancel()
    result = await task

    assert result.kind == ErrorKind.CANCELLED
    assert result.error == "Capture was cancelled"


async def test_batch_reports_partial_failures(parser, repository):
    # Arrange
    on_device = MockTextExtractor(
        default=Result.failure("sensor error", ErrorKind.EXTRACTION),
        per_image={"a": outcome("R1\nIngredients: 1 cup rice", 0.9, ExtractionSource.ON_DEVICE)},
    )
    cloud = MockTextExtractor(Result.failure("cloud offline", ErrorKind.EXTRACTION))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    # Act
    result = await orchestrator.execute_multiple(["a", "b"])

    # Assert
    assert result.is_success
    assert [r.title for r in result.value.successes] == ["R1"]
    assert len(result.value.errors) == 1
    assert result.value.errors[0].startswith("Failed to process image 2 (b): OCR failed:")


async def test_batch_keeps_input_order_under_concurrency(parser, repository):
    refs = [f"img-{i}" for i in range(6)]
    on_device = MockTextExtractor(
        per_image={ref: outcome(f"{ref}\nbake it", 0.9, ExtractionSource.ON_DEVICE) for ref in refs}
    )
    orchestrator = build_orchestrator(on_device, MockTextExtractor(), parser, repository)

    result = await orchestrator.execute_multiple(refs, persist=False)

    assert [r.title for r in result.value.successes] == refs
    assert repository.saved == []


async def test_batch_fails_when_every_image_fails(parser, repository):
    on_device = MockTextExtractor(Result.failure("sensor error", ErrorKind.EXTRACTION))
    cloud = MockTextExtractor(Result.failure("cloud offline", ErrorKind.EXTRACTION))
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute_multiple(["a", "b", "c"])

    assert result.is_failure
    assert "All images failed" in result.error
    assert result.error.count("Failed to process image") == 3
    assert result.kind == ErrorKind.EXTRACTION


async def test_batch_requires_images(orchestrator, on_device):
    result = await orchestrator.execute_multiple([])

    assert result.error == "Image URIs are required"
    assert result.kind == ErrorKind.INPUT_VALIDATION
    assert on_device.availability_calls == 0


async def test_diagnostics_forward_service_values(orchestrator):
    await orchestrator.execute("file://a.jpg")

    assert (await orchestrator.get_last_ocr_confidence()).value == 0.95
    assert (await orchestrator.get_last_parsing_confidence()).value == 0.9


async def test_scenario_a_saves_exactly_once(on_device, cloud, parser):
    repository = AsyncMock(spec=RecipeRepositoryPort)
    repository.save.return_value = Result.success(None)
    orchestrator = build_orchestrator(on_device, cloud, parser, repository)

    result = await orchestrator.execute("file://a.jpg")

    assert result.is_success
    repository.save.assert_awaited_once_with(result.value)
