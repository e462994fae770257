import pytest
from pybreaker import CircuitBreaker

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.domain.models import ExtractionSource, OcrQualityMode
from recipe_capture.domain.result import Result
from recipe_capture.infrastructure.ocr.cloud_extractor import CloudTextExtractor
from recipe_capture.infrastructure.persistence.settings_store import InMemorySettingsStore
from recipe_capture.services.hybrid_extraction_service import HybridExtractionService
from tests.mocks.mock_extractors import MockTextExtractor, outcome
from tests.mocks.mock_settings_store import BrokenSettingsStore

ON_DEVICE = ExtractionSource.ON_DEVICE
CLOUD = ExtractionSource.CLOUD


def build_service(on_device, cloud, mode="hybrid", store=None) -> HybridExtractionService:
    return HybridExtractionService(
        on_device=on_device,
        cloud=cloud,
        settings_port=store or InMemorySettingsStore(mode),
        confidence_threshold=0.70,
    )


async def test_confident_on_device_result_skips_cloud():
    # Arrange
    on_device = MockTextExtractor(outcome("on device text", 0.95, ON_DEVICE))
    cloud = MockTextExtractor(outcome("cloud text", 0.9, CLOUD))
    service = build_service(on_device, cloud)

    # Act
    result = await service.extract_text("file://a.jpg")

    # Assert
    assert result.value.text == "on device text"
    assert result.value.source == ON_DEVICE
    assert cloud.extract_calls == []
    assert service.get_last_used_source() == ON_DEVICE
    assert service.get_last_confidence_score().value == 0.95


@pytest.mark.parametrize("confidence", [0.70, 0.5])
async def test_low_confidence_falls_back_to_cloud(confidence):
    on_device = MockTextExtractor(outcome("blurry", confidence, ON_DEVICE))
    cloud = MockTextExtractor(outcome("sharp cloud text", 0.85, CLOUD))
    service = build_service(on_device, cloud)

    result = await service.extract_text("file://a.jpg")

    assert result.value.text == "sharp cloud text"
    assert result.value.source == CLOUD
    assert cloud.extract_calls == ["file://a.jpg"]


async def test_on_device_failure_falls_back_to_cloud():
    on_device = MockTextExtractor(Result.failure("sensor error", ErrorKind.EXTRACTION))
    cloud = MockTextExtractor(outcome("text", 0.6, CLOUD))
    service = build_service(on_device, cloud)

    result = await service.extract_text("file://a.jpg")

    assert result.is_success
    assert result.value.source == CLOUD
    assert service.get_last_used_source() == CLOUD


async def test_low_confidence_on_device_result_survives_cloud_failure():
    on_device = MockTextExtractor(outcome("faint text", 0.4, ON_DEVICE))
    cloud = MockTextExtractor(Result.failure("cloud down", ErrorKind.EXTRACTION))
    service = build_service(on_device, cloud)

    result = await service.extract_text("file://a.jpg")

    assert result.value.text == "faint text"
    assert result.value.source == ON_DEVICE


async def test_both_tiers_failing_reports_both_errors():
    on_device = MockTextExtractor(Result.failure("sensor error", ErrorKind.EXTRACTION))
    cloud = MockTextExtractor(Result.failure("HTTP 503", ErrorKind.EXTRACTION))
    service = build_service(on_device, cloud)

    result = await service.extract_text("file://a.jpg")

    assert result.is_failure
    assert result.kind == ErrorKind.EXTRACTION
    assert "sensor error" in result.error
    assert "HTTP 503" in result.error
    assert service.get_last_used_source() == ExtractionSource.NONE


@pytest.mark.parametrize(
    "mode, expected_source",
    [(OcrQualityMode.ON_DEVICE, ON_DEVICE), (OcrQualityMode.CLOUD, CLOUD)],
)
async def test_single_tier_modes_call_only_their_extractor(mode, expected_source):
    on_device = MockTextExtractor(outcome("device", 0.1, ON_DEVICE))
    cloud = MockTextExtractor(outcome("cloud", 0.1, CLOUD))
    service = build_service(on_device, cloud, mode=mode)

    result = await service.extract_text("file://a.jpg")

    assert result.value.source == expected_source
    assert len(on_device.extract_calls) == (1 if mode == OcrQualityMode.ON_DEVICE else 0)
    assert len(cloud.extract_calls) == (1 if mode == OcrQualityMode.CLOUD else 0)


async def test_single_tier_failure_is_propagated_unchanged():
    failure = Result.failure("tesseract missing", ErrorKind.EXTRACTION)
    service = build_service(MockTextExtractor(failure), MockTextExtractor(), mode="on_device")

    result = await service.extract_text("file://a.jpg")

    assert result == failure


async def test_unreadable_settings_fail_extraction():
    service = build_service(MockTextExtractor(), MockTextExtractor(), store=BrokenSettingsStore())

    result = await service.extract_text("file://a.jpg")

    assert result.is_failure
    assert result.error == "Failed to get settings: storage offline"


async def test_hybrid_is_available_when_either_tier_is():
    on_device = MockTextExtractor(available=Result.success(False))
    cloud = MockTextExtractor(available=Result.failure("unreachable", ErrorKind.SERVICE_UNAVAILABLE))
    assert (await build_service(on_device, cloud).is_available()).value is False

    cloud.available = Result.success(True)
    assert (await build_service(on_device, cloud).is_available()).value is True


async def test_single_tier_availability_ignores_the_other_tier():
    on_device = MockTextExtractor(available=Result.success(False))
    cloud = MockTextExtractor(available=Result.success(True))

    result = await build_service(on_device, cloud, mode="on_device").is_available()

    assert result.value is False
    assert cloud.availability_calls == 0


async def test_extract_many_keeps_successes_in_input_order():
    on_device = MockTextExtractor(
        default=Result.failure("unreadable", ErrorKind.EXTRACTION),
        per_image={
            "a": outcome("text a", 0.9, ON_DEVICE),
            "c": outcome("text c", 0.9, ON_DEVICE),
        },
    )
    cloud = MockTextExtractor(Result.failure("offline", ErrorKind.EXTRACTION))
    service = build_service(on_device, cloud)

    result = await service.extract_many(["a", "b", "c"])

    assert result.value == ["text a", "text c"]


async def test_extract_many_fails_only_when_every_image_fails():
    on_device = MockTextExtractor(Result.failure("unreadable", ErrorKind.EXTRACTION))
    cloud = MockTextExtractor(Result.failure("offline", ErrorKind.EXTRACTION))
    service = build_service(on_device, cloud)

    result = await service.extract_many(["a", "b"])

    assert result.is_failure
    assert result.error.startswith("All OCR extractions failed:")
    assert result.error.count("unreadable") == 2


async def test_extract_many_requires_images():
    result = await build_service(MockTextExtractor(), MockTextExtractor()).extract_many([])

    assert result.kind == ErrorKind.INPUT_VALIDATION


async def test_service_status_reports_each_tier():
    on_device = MockTextExtractor(available=Result.success(True))
    cloud = MockTextExtractor(available=Result.failure("no route", ErrorKind.SERVICE_UNAVAILABLE))

    status = (await build_service(on_device, cloud).get_service_status()).value

    assert status.on_device is True
    assert status.cloud is False
    assert status.cloud_error == "no route"
    assert status.current_mode == OcrQualityMode.HYBRID


@pytest.mark.parametrize(
    "cloud_body",
    [
        ["unexpected", "list"],
        {"success": True, "extractedText": "cloud text", "confidence": "high"},
    ],
)
async def test_malformed_cloud_body_falls_back_to_on_device_text(cloud_body, png_image, httpx_mock):
    httpx_mock.add_response(method="POST", url="http://ocr.test/api/ocr/extract", json=cloud_body)
    on_device = MockTextExtractor(outcome("low conf text", 0.4, ON_DEVICE))
    cloud = CloudTextExtractor(base_url="http://ocr.test/api", breaker=CircuitBreaker())
    service = build_service(on_device, cloud)

    result = await service.extract_text(png_image)

    assert result.is_success
    assert result.value.text == "low conf text"
    assert result.value.source == ON_DEVICE
