"""
Studio workflow: upload -> analyze -> choose style -> generate -> results.

The workflow is split in two parts:

- `transition(state, event)` is a pure reducer. It takes the current
  WorkflowState and one event and returns a Transition: the next state plus
  the effects (network calls to start, previews to release) the driver must
  carry out. It never performs I/O.
- `WorkflowSession` is the async driver. It owns one state, executes effects,
  awaits the backend and feeds completions back into the reducer.

Analysis and generation completions carry the epoch they were started under.
Restart and "back" bump the epoch, so a late answer for an abandoned request
is recognised as stale and dropped instead of overwriting newer state. Upload
completions are matched on the preview they belong to instead: the photo
stays selected across "back", so its upload result must still land.
"""
import logging
import mimetypes
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from core.errors import ContentRefusalFault, InputFault, LandscapeError
from core.settings import settings
from services.analysis_service import FALLBACK_ANALYSIS, AnalysisResult, AnalysisService
from services.generation_service import GeneratedDesign, GenerationRequest, GenerationService
from services.preview_service import PreviewStore
from services.style_catalog import StyleChoice
from services.upload_service import RemoteAsset, UploadService


class WorkflowStage(str, Enum):
    HOME = "home"
    UPLOADING = "uploading"
    ANALYZING = "analyzing"
    STYLE_SELECTION = "style_selection"
    GENERATING = "generating"
    RESULTS = "results"


class InvalidTransition(LandscapeError):
    """A user action that is not allowed in the current stage."""
    http_status = 409
    default_message = "Action not available right now"


@dataclass(frozen=True)
class UploadedAsset:
    local_handle: str
    preview_url: str
    filename: str
    mime_type: str
    size: int
    remote_url: Optional[str] = None
    upload_pending: bool = True
    upload_error: Optional[str] = None

    @property
    def best_url(self) -> str:
        """The hosted URL when we have one, the local preview otherwise."""
        return self.remote_url or self.preview_url


@dataclass(frozen=True)
class WorkflowState:
    stage: WorkflowStage = WorkflowStage.HOME
    epoch: int = 0
    asset: Optional[UploadedAsset] = None
    analysis: Optional[AnalysisResult] = None
    analysis_degraded: bool = False
    style: Optional[StyleChoice] = None
    design: Optional[GeneratedDesign] = None
    notice: Optional[str] = None
    # Outstanding calls, kept across restarts until they settle
    analysis_in_flight: bool = False
    generation_in_flight: bool = False

    @property
    def comparison(self) -> Optional[tuple[str, str]]:
        """(before, after) image references once a design exists."""
        if self.asset is None or self.design is None:
            return None
        return self.asset.best_url, self.design.image_url


# --- User events ---

@dataclass(frozen=True)
class GetStarted:
    pass


@dataclass(frozen=True)
class FileSelected:
    asset: UploadedAsset


@dataclass(frozen=True)
class BeginAnalysis:
    pass


@dataclass(frozen=True)
class ChooseStyle:
    choice: StyleChoice


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class Restart:
    pass


# --- Async completions ---

@dataclass(frozen=True)
class UploadSettled:
    preview_url: str
    remote: Optional[RemoteAsset] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AnalysisSucceeded:
    epoch: int
    result: AnalysisResult


@dataclass(frozen=True)
class AnalysisFailed:
    epoch: int
    error: Exception


@dataclass(frozen=True)
class GenerationSucceeded:
    epoch: int
    design: GeneratedDesign


@dataclass(frozen=True)
class GenerationFailed:
    epoch: int
    error: Exception


Event = Union[
    GetStarted, FileSelected, BeginAnalysis, ChooseStyle, Back, Restart,
    UploadSettled, AnalysisSucceeded, AnalysisFailed, GenerationSucceeded, GenerationFailed,
]


# --- Effects ---

@dataclass(frozen=True)
class RevokePreview:
    reference: str


@dataclass(frozen=True)
class StartUpload:
    asset: UploadedAsset


@dataclass(frozen=True)
class StartAnalysis:
    image_url: str
    epoch: int


@dataclass(frozen=True)
class StartGeneration:
    request: GenerationRequest
    epoch: int


Effect = Union[RevokePreview, StartUpload, StartAnalysis, StartGeneration]


@dataclass(frozen=True)
class Transition:
    state: WorkflowState
    effects: tuple = field(default_factory=tuple)
    stale: bool = False


USER_ACTIONS = (GetStarted, FileSelected, BeginAnalysis, ChooseStyle, Back, Restart)

REFUSED_NOTICE = "We couldn't analyze the content of this photo, so the suggestions below are general."
DEGRADED_NOTICE = "Analysis is unavailable right now, so the suggestions below are general."


def _reject(state: WorkflowState, event, reason: str) -> InvalidTransition:
    name = event.__name__ if isinstance(event, type) else type(event).__name__
    return InvalidTransition(
        f"{name} not allowed in stage '{state.stage.value}'",
        details=reason,
    )


def _reset(state: WorkflowState) -> Transition:
    effects = (RevokePreview(state.asset.preview_url),) if state.asset else ()
    fresh = WorkflowState(
        stage=WorkflowStage.HOME,
        epoch=state.epoch + 1,
        analysis_in_flight=state.analysis_in_flight,
        generation_in_flight=state.generation_in_flight,
    )
    return Transition(fresh, effects)


def transition(state: WorkflowState, event: Event) -> Transition:
    """
    Compute the next state for one event.

    Raises:
        InvalidTransition: A user action is not defined for the current stage
            or its guard fails. Async completions never raise; stale ones come
            back with `stale=True`.
    """
    stage = state.stage

    if isinstance(event, Restart):
        return _reset(state)

    if isinstance(event, GetStarted):
        if stage != WorkflowStage.HOME:
            raise _reject(state, event, "The studio is already open")
        return Transition(replace(state, stage=WorkflowStage.UPLOADING, notice=None))

    if isinstance(event, FileSelected):
        if stage != WorkflowStage.UPLOADING:
            raise _reject(state, event, "Photos can only be chosen on the upload step")
        effects = []
        if state.asset is not None:
            effects.append(RevokePreview(state.asset.preview_url))
        effects.append(StartUpload(event.asset))
        return Transition(replace(state, asset=event.asset, notice=None), tuple(effects))

    if isinstance(event, BeginAnalysis):
        if stage != WorkflowStage.UPLOADING:
            raise _reject(state, event, "Analysis starts from the upload step")
        if state.asset is None:
            raise _reject(state, event, "Select a photo first")
        if state.analysis_in_flight:
            raise _reject(state, event, "A previous analysis is still running")
        next_state = replace(
            state,
            stage=WorkflowStage.ANALYZING,
            analysis_in_flight=True,
            notice=None,
        )
        return Transition(next_state, (StartAnalysis(state.asset.best_url, state.epoch),))

    if isinstance(event, ChooseStyle):
        if stage != WorkflowStage.STYLE_SELECTION:
            raise _reject(state, event, "Styles are chosen on the style step")
        if state.generation_in_flight:
            raise _reject(state, event, "A previous design is still being generated")
        choice = event.choice
        request = GenerationRequest(
            image_url=state.asset.best_url,
            analysis_result=state.analysis,
            style=choice.style_key,
            custom_prompt=choice.custom_description,
        )
        next_state = replace(
            state,
            stage=WorkflowStage.GENERATING,
            style=choice,
            generation_in_flight=True,
            notice=None,
        )
        return Transition(next_state, (StartGeneration(request, state.epoch),))

    if isinstance(event, Back):
        if stage == WorkflowStage.GENERATING:
            # The pending generation keeps running; its result is dropped
            return Transition(replace(state, stage=WorkflowStage.STYLE_SELECTION, epoch=state.epoch + 1))
        if stage == WorkflowStage.RESULTS:
            return Transition(replace(state, stage=WorkflowStage.STYLE_SELECTION, design=None))
        if stage in (WorkflowStage.UPLOADING, WorkflowStage.ANALYZING, WorkflowStage.STYLE_SELECTION):
            return _reset(state)
        raise _reject(state, event, "Nothing to go back to")

    if isinstance(event, UploadSettled):
        asset = state.asset
        if asset is None or asset.preview_url != event.preview_url:
            return Transition(state, stale=True)
        if event.remote is not None:
            asset = replace(asset, remote_url=event.remote.url, upload_pending=False, upload_error=None)
        else:
            asset = replace(asset, upload_pending=False, upload_error=event.error or "Upload failed")
        return Transition(replace(state, asset=asset))

    if isinstance(event, (AnalysisSucceeded, AnalysisFailed)):
        settled = replace(state, analysis_in_flight=False)
        if event.epoch != state.epoch or stage != WorkflowStage.ANALYZING:
            return Transition(settled, stale=True)
        if isinstance(event, AnalysisSucceeded):
            return Transition(replace(
                settled,
                stage=WorkflowStage.STYLE_SELECTION,
                analysis=event.result,
                analysis_degraded=False,
            ))
        notice = REFUSED_NOTICE if isinstance(event.error, ContentRefusalFault) else DEGRADED_NOTICE
        return Transition(replace(
            settled,
            stage=WorkflowStage.STYLE_SELECTION,
            analysis=FALLBACK_ANALYSIS,
            analysis_degraded=True,
            notice=notice,
        ))

    if isinstance(event, (GenerationSucceeded, GenerationFailed)):
        settled = replace(state, generation_in_flight=False)
        if event.epoch != state.epoch or stage != WorkflowStage.GENERATING:
            return Transition(settled, stale=True)
        if isinstance(event, GenerationSucceeded):
            return Transition(replace(settled, stage=WorkflowStage.RESULTS, design=event.design))
        return Transition(replace(
            settled,
            stage=WorkflowStage.STYLE_SELECTION,
            notice=f"Design generation failed: {event.error}. Please try again.",
        ))

    raise TypeError(f"Unknown workflow event: {event!r}")


class LandscapeBackend(Protocol):
    """What the session needs from the outside world."""

    async def upload(self, content: bytes, filename: str, content_type: Optional[str],
                     owner_hint: Optional[str] = None) -> RemoteAsset: ...

    async def analyze(self, image_url: str) -> AnalysisResult: ...

    async def generate(self, request: GenerationRequest) -> GeneratedDesign: ...


class LocalBackend:
    """Calls the services in-process."""

    def __init__(
        self,
        uploader: Optional[UploadService] = None,
        analyzer: Optional[AnalysisService] = None,
        generator: Optional[GenerationService] = None,
    ):
        self.uploader = uploader or UploadService()
        self.analyzer = analyzer or AnalysisService()
        self.generator = generator or GenerationService()

    async def upload(self, content, filename, content_type, owner_hint=None) -> RemoteAsset:
        return await self.uploader.upload(content, filename, content_type, owner_hint)

    async def analyze(self, image_url: str) -> AnalysisResult:
        return await self.analyzer.analyze(image_url)

    async def generate(self, request: GenerationRequest) -> GeneratedDesign:
        return await self.generator.generate(request)


def _effect(transition_: Transition, kind: type):
    for effect in transition_.effects:
        if isinstance(effect, kind):
            return effect
    return None


class WorkflowSession:
    """
    One user's studio session. The only writer of its WorkflowState.
    """

    def __init__(
        self,
        backend: LandscapeBackend,
        previews: Optional[PreviewStore] = None,
        owner_hint: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = uuid.uuid4().hex
        self.backend = backend
        self.previews = previews or PreviewStore(settings.PREVIEW_DIR)
        self.owner_hint = owner_hint
        self._clock = clock
        self._state = WorkflowState()
        self.stage_started_at = clock()

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def stage(self) -> WorkflowStage:
        return self._state.stage

    @property
    def can_analyze(self) -> bool:
        s = self._state
        return s.stage == WorkflowStage.UPLOADING and s.asset is not None and not s.analysis_in_flight

    @property
    def can_generate(self) -> bool:
        s = self._state
        return s.stage == WorkflowStage.STYLE_SELECTION and not s.generation_in_flight

    def elapsed(self) -> float:
        """Seconds since the current stage was entered."""
        return self._clock() - self.stage_started_at

    def dispatch(self, event: Event) -> Transition:
        result = transition(self._state, event)
        if result.stale:
            logging.info(f"⏭️  Discarding stale {type(event).__name__} (epoch {getattr(event, 'epoch', '?')})")
        if result.state.stage != self._state.stage:
            logging.info(f"➡️  {self._state.stage.value} -> {result.state.stage.value}")
            self.stage_started_at = self._clock()
        self._state = result.state
        for effect in result.effects:
            if isinstance(effect, RevokePreview):
                self.previews.revoke(effect.reference)
        return result

    def get_started(self) -> WorkflowState:
        self.dispatch(GetStarted())
        return self._state

    def register_file(self, path: str | Path, mime_type: Optional[str] = None) -> StartUpload:
        """
        Make a newly selected photo the current asset.

        Returns the upload to start. Analysis may begin before it is carried
        out by upload_file().
        """
        path = Path(path)
        mime_type = mime_type or mimetypes.guess_type(path.name)[0]
        if not mime_type or not mime_type.startswith("image/"):
            raise InputFault("File must be an image", details=f"{path.name} is {mime_type or 'unknown'}")
        if self._state.stage != WorkflowStage.UPLOADING:
            raise _reject(self._state, FileSelected, "Photos can only be chosen on the upload step")

        preview = self.previews.create(path)
        asset = UploadedAsset(
            local_handle=str(path),
            preview_url=preview,
            filename=path.name,
            mime_type=mime_type,
            size=path.stat().st_size,
        )
        return _effect(self.dispatch(FileSelected(asset)), StartUpload)

    async def upload_file(self, started: StartUpload) -> WorkflowState:
        """
        Host the photo behind a StartUpload.

        An upload failure is not fatal: the asset keeps its local preview and
        the error is recorded on it.
        """
        asset = started.asset
        try:
            content = Path(asset.local_handle).read_bytes()
            remote = await self.backend.upload(content, asset.filename, asset.mime_type, self.owner_hint)
        except Exception as e:
            logging.warning(f"⚠️  Upload failed, continuing with local preview: {e}")
            self.dispatch(UploadSettled(asset.preview_url, error=str(e)))
        else:
            self.dispatch(UploadSettled(asset.preview_url, remote=remote))
        return self._state

    async def select_file(self, path: str | Path, mime_type: Optional[str] = None) -> WorkflowState:
        """Register a newly selected photo and upload it."""
        return await self.upload_file(self.register_file(path, mime_type))

    async def begin_analysis(self) -> WorkflowState:
        started = _effect(self.dispatch(BeginAnalysis()), StartAnalysis)
        try:
            result = await self.backend.analyze(started.image_url)
        except Exception as e:
            logging.warning(f"⚠️  Analysis failed, continuing with general suggestions: {e}")
            self.dispatch(AnalysisFailed(started.epoch, e))
        else:
            self.dispatch(AnalysisSucceeded(started.epoch, result))
        return self._state

    async def choose_style(self, choice: StyleChoice) -> WorkflowState:
        started = _effect(self.dispatch(ChooseStyle(choice)), StartGeneration)
        try:
            design = await self.backend.generate(started.request)
        except Exception as e:
            logging.error(f"❌ Generation failed: {e}")
            self.dispatch(GenerationFailed(started.epoch, e))
        else:
            self.dispatch(GenerationSucceeded(started.epoch, design))
        return self._state

    def back(self) -> WorkflowState:
        self.dispatch(Back())
        return self._state

    def restart(self) -> WorkflowState:
        self.dispatch(Restart())
        return self._state

    def close(self) -> None:
        """Release the current preview and the preview store."""
        self.restart()
        self.previews.close()
