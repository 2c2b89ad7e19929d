"""
Tests for the Gradio studio handlers

Handlers are plain (async) functions, so they are driven directly with a
WorkflowSession over a mock backend; no browser or Gradio server is started.
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import gradio as gr
import pytest
from unittest.mock import AsyncMock, Mock
from PIL import Image

import app
from core.errors import UpstreamFault
from services.analysis_service import AnalysisResult
from services.generation_service import GeneratedDesign
from services.preview_service import PreviewStore
from services.upload_service import RemoteAsset
from services.workflow_service import WorkflowSession, WorkflowStage


REMOTE_URL = "https://host/x.jpg"

# Positions in the tuple returned by app.render()
UPLOAD_STATUS = 9
ANALYZE_BUTTON = 10
DOWNLOAD = 16


@pytest.fixture
def downloads(tmp_path, monkeypatch):
    root = tmp_path / "downloads"
    monkeypatch.setattr(app, "DOWNLOAD_DIR", root)
    return root


@pytest.fixture
def design_png(tmp_path):
    path = tmp_path / "design" / "zen.png"
    path.parent.mkdir()
    Image.new("RGB", (8, 8), "green").save(path)
    return path


@pytest.fixture
def make_session(sample_analysis_data, design_png):
    sessions = []

    def factory(previews=None):
        backend = Mock()
        backend.upload = AsyncMock(side_effect=UpstreamFault("Upload failed", details="offline"))
        backend.analyze = AsyncMock(return_value=AnalysisResult.model_validate(sample_analysis_data))
        backend.generate = AsyncMock(return_value=GeneratedDesign(image_url=str(design_png)))
        session = WorkflowSession(backend, previews=previews or PreviewStore())
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.previews.close()


async def _drain(updates):
    return [output async for output in updates]


class TestFileSelected:
    """Test the photo upload handler"""

    @pytest.mark.asyncio
    async def test_analyze_enabled_before_upload_settles(self, make_session, yard_photo):
        session = make_session()
        gate = asyncio.Event()

        async def slow_upload(*args):
            await gate.wait()
            return RemoteAsset(url=REMOTE_URL)

        session.backend.upload = AsyncMock(side_effect=slow_upload)
        session.get_started()
        updates = app.on_file_selected(str(yard_photo), session)

        first = await updates.__anext__()

        assert first[0] is session
        assert session.state.asset.upload_pending
        assert first[ANALYZE_BUTTON]["interactive"] is True
        assert "Uploading" in first[UPLOAD_STATUS]

        gate.set()
        second = await updates.__anext__()

        assert session.state.asset.remote_url == REMOTE_URL
        assert "ready for analysis" in second[UPLOAD_STATUS]
        with pytest.raises(StopAsyncIteration):
            await updates.__anext__()

    @pytest.mark.asyncio
    async def test_non_image_shows_notice(self, make_session, tmp_path):
        notes = tmp_path / "notes.txt"
        notes.write_text("not a photo")
        session = make_session()
        session.get_started()

        outputs = await _drain(app.on_file_selected(str(notes), session))

        assert len(outputs) == 1
        assert session.state.asset is None
        session.backend.upload.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_path(self, make_session):
        session = make_session()

        outputs = await _drain(app.on_file_selected(None, session))

        assert len(outputs) == 1
        assert outputs[0][0] is session


class TestDownloads:
    """Each browser session keeps its own download folder"""

    @pytest.mark.asyncio
    async def test_same_file_name_in_two_sessions(self, make_session, downloads, yard_photo):
        saved = []
        for _ in range(2):
            session = make_session()
            session.get_started()
            await session.select_file(yard_photo)
            await session.begin_analysis()

            outputs = await _drain(app.on_generate("zen-garden", "", session))

            assert session.stage == WorkflowStage.RESULTS
            saved.append(Path(outputs[-1][DOWNLOAD]))

        first, second = saved
        assert first.name == second.name == "zen.png"
        assert first != second
        assert first.exists() and second.exists()
        assert first.parent.parent == downloads


class TestSessionCleanup:
    """Test releasing a session when its browser tab goes away"""

    @pytest.mark.asyncio
    async def test_close_releases_preview_and_downloads(self, make_session, downloads, yard_photo):
        previews = PreviewStore()
        session = make_session(previews)
        session.get_started()
        await session.select_file(yard_photo)
        folder = app.session_download_dir(session)
        folder.mkdir(parents=True)
        (folder / "zen.png").write_bytes(b"png")

        app.close_session(session)

        assert previews.live_count == 0
        assert previews.created == previews.revoked == 1
        assert not previews.root.exists()
        assert not folder.exists()
        assert session.stage == WorkflowStage.HOME

    def test_close_without_session(self):
        app.close_session(None)

    def test_session_state_is_cleaned_up(self):
        demo = app.build_studio()

        states = [block for block in demo.blocks.values() if isinstance(block, gr.State)]

        assert [state.delete_callback for state in states] == [app.close_session]
