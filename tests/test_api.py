"""TDD: HTTP surface tests written FIRST"""
import logging

import pytest
from fastapi.testclient import TestClient
from rich.logging import RichHandler

from conftest import FakeClock, FakeVision, make_config
from skinscan.api import create_app
from skinscan.coordinator import RequestCoordinator

JPEG = bytes([128]) * 70_000


@pytest.fixture
def factory_calls():
    return []


def _client(factory_calls, vision_factory=lambda clock: None, **config):
    def factory(cfg):
        clock = FakeClock()
        factory_calls.append(cfg)
        return RequestCoordinator(cfg, vision=vision_factory(clock), clock=clock, sleep=clock.sleep)

    return TestClient(create_app(make_config(**config), coordinator_factory=factory))


def test_scan_without_images_is_rejected_before_any_remote_call(factory_calls):
    client = _client(factory_calls)

    response = client.post("/scan", data={"note": "no files"})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"
    assert "image1" in response.json()["message"]
    assert factory_calls == []


def test_scan_with_only_secondary_image_is_rejected(factory_calls):
    client = _client(factory_calls)

    response = client.post("/scan", files={"image2": ("b.jpg", JPEG, "image/jpeg")})

    assert response.status_code == 400
    assert factory_calls == []


def test_scan_ignores_unselected_optional_file_field(factory_calls):
    client = _client(factory_calls, youcam_api_key=None)

    response = client.post(
        "/scan",
        files={
            "image1": ("a.jpg", JPEG, "image/jpeg"),
            "image2": ("", b"", "application/octet-stream"),
        },
    )

    assert response.status_code == 200
    assert len(factory_calls) == 1


def test_scan_with_empty_primary_is_rejected(factory_calls):
    client = _client(factory_calls)

    response = client.post(
        "/scan",
        files={
            "image1": ("", b"", "application/octet-stream"),
            "image2": ("b.jpg", JPEG, "image/jpeg"),
        },
    )

    assert response.status_code == 400
    assert "image1" in response.json()["message"]
    assert factory_calls == []


def test_scan_with_non_image_upload_is_rejected(factory_calls):
    client = _client(factory_calls)

    response = client.post("/scan", files={"image1": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 400
    assert "content type" in response.json()["message"]


def test_scan_degraded_report_is_still_200(factory_calls):
    client = _client(factory_calls, youcam_api_key=None)

    response = client.post("/scan", files={"image1": ("a.jpg", JPEG, "image/jpeg")})

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is True
    assert len(body["signals"]) == 14
    assert len(body["dimensions"]) == 6
    assert all(s["max"] == 100 for s in body["signals"])
    assert body["request_id"].startswith("scan_")


def test_scan_vendor_report_round_trips_as_json(factory_calls):
    client = _client(factory_calls, vision_factory=lambda clock: FakeVision(clock=clock))

    response = client.post(
        "/scan",
        files={
            "image1": ("a.jpg", JPEG, "image/jpeg"),
            "image2": ("b.jpg", JPEG, "image/jpeg"),
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is False
    assert body["meta"]["vision_task_id"] == "task-1"
    assert body["signals"][0]["overlays"] == ["hd_texture.png"]
    assert [d["label_en"] for d in body["signals"][0]["details"]] == ["Roughness", "Smoothness", "Evenness"]
    assert body["signals"][0]["title_zh"] == "紋理結構矩陣"
    assert len(factory_calls) == 1


def test_health_reports_configured_backends(factory_calls):
    client = _client(factory_calls, openai_api_key="sk")

    body = client.get("/health").json()

    assert body == {"status": "ok", "vision": True, "narrative": True}


def test_setup_logging_installs_single_rich_handler(monkeypatch):
    from skinscan.main import _setup_logging

    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    _setup_logging("debug")
    _setup_logging("debug")

    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], RichHandler)
