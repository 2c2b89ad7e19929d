import gradio as gr
import asyncio
import html
import logging
import shutil
import sys
import tempfile
from functools import lru_cache
from pathlib import Path

# --- SETUP PATHS ---
sys.path.insert(0, str(Path(__file__).parent))

# --- IMPORTS ---
from core.errors import LandscapeError
from core.settings import settings
from services.api_client import LandscapeApiClient
from services.comparison_service import compose_before_after, load_image, save_for_download
from services.progress_service import (
    ANALYSIS_PLAN,
    GENERATION_PLAN,
    ProgressTracker,
    render_progress_html,
    snapshot,
)
from services.style_catalog import CUSTOM_STYLE_ID, PRESET_STYLES, StyleChoice
from services.workflow_service import LocalBackend, WorkflowSession, WorkflowStage

# --- LOGGING SETUP ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# --- CONFIG ---
PROGRESS_TICK_SECONDS = 0.25
DOWNLOAD_DIR = Path(tempfile.gettempdir()) / "yardscape-downloads"
UPLOAD_HINT = f"Drop a JPG or PNG photo of your yard (up to {settings.MAX_UPLOAD_MB} MB)."

STYLE_CHOICES = [(style.name, style.id) for style in PRESET_STYLES] + [("✏️ Describe my own", CUSTOM_STYLE_ID)]


# --- HELPER FUNCTIONS ---
def make_backend():
    """Talk to the HTTP shim when SHIM_BASE_URL is set, otherwise call services in-process."""
    if settings.SHIM_BASE_URL:
        logger.info(f"🔌 Studio using HTTP shim at {settings.SHIM_BASE_URL}")
        return LandscapeApiClient()
    return LocalBackend()


def ensure_session(session):
    if session is None:
        session = WorkflowSession(make_backend())
    return session


def session_download_dir(session) -> Path:
    return DOWNLOAD_DIR / session.id


def close_session(session):
    """Release a browser session's preview and downloads once its tab is gone."""
    if session is None:
        return
    session.close()
    shutil.rmtree(session_download_dir(session), ignore_errors=True)
    logger.info(f"🧹 Session {session.id} closed")


@lru_cache(maxsize=16)
def cached_image(source: str):
    return load_image(source)


def format_analysis(state) -> str:
    """Markdown summary of the analysis shown on the style step."""
    analysis = state.analysis
    if analysis is None:
        return ""

    def bullets(items):
        return "\n".join(f"- {html.escape(item)}" for item in items) or "- _None noted_"

    lines = [
        "### 🔎 Your Space",
        f"**Type:** {analysis.space_type}  ·  **Size:** {analysis.size}",
        f"**Light:** {analysis.lighting}  ·  **Soil:** {analysis.soil_type}  ·  **Climate:** {analysis.climate}",
        "",
        "**Existing features**",
        bullets(analysis.existing_features),
        "",
        "**Challenges**",
        bullets(analysis.challenges),
        "",
        "**Opportunities**",
        bullets(analysis.opportunities),
    ]
    if analysis.recommendations:
        lines += ["", "**Recommendations**", bullets(analysis.recommendations)]
    return "\n".join(lines)


def upload_status(state) -> str:
    asset = state.asset
    if asset is None:
        return UPLOAD_HINT
    size_kb = round(asset.size / 1024)
    if asset.upload_pending:
        return f"⏳ Uploading **{asset.filename}** ({size_kb} KB)..."
    if asset.upload_error:
        return f"⚠️ **{asset.filename}** ({size_kb} KB) could not be hosted: {asset.upload_error}"
    return f"✅ **{asset.filename}** ({size_kb} KB) ready for analysis."


def comparison_image(state, position: float = 50.0):
    sources = state.comparison
    if sources is None:
        return None
    before, after = sources
    try:
        return compose_before_after(cached_image(before), cached_image(after), position)
    except Exception as e:
        logger.error(f"Comparison render error: {e}")
        return None


def render(session, analysis_progress: str = "", generation_progress: str = "", download=None, notice=None):
    """Map the session state onto every output component."""
    state = session.state
    stage = state.stage
    message = notice if notice is not None else state.notice
    results = stage == WorkflowStage.RESULTS

    return (
        session,
        gr.update(visible=stage == WorkflowStage.HOME),
        gr.update(visible=stage == WorkflowStage.UPLOADING),
        gr.update(visible=stage == WorkflowStage.ANALYZING),
        gr.update(visible=stage == WorkflowStage.STYLE_SELECTION),
        gr.update(visible=stage == WorkflowStage.GENERATING),
        gr.update(visible=results),
        gr.update(visible=bool(message), value=f"ℹ️ {message}" if message else ""),
        gr.update(value=state.asset.preview_url if state.asset else None),
        upload_status(state),
        gr.update(interactive=session.can_analyze),
        format_analysis(state),
        gr.update(interactive=session.can_generate),
        analysis_progress,
        generation_progress,
        comparison_image(state) if results else None,
        download,
    )


# --- EVENT HANDLERS ---

def on_get_started(session):
    session = ensure_session(session)
    if session.stage != WorkflowStage.HOME:
        session.restart()
    session.get_started()
    return render(session)


async def on_file_selected(path, session):
    session = ensure_session(session)
    if not path:
        yield render(session)
        return
    try:
        started = session.register_file(path)
    except LandscapeError as e:
        yield render(session, notice=str(e))
        return

    # Analysis may start while the upload is still running
    yield render(session)
    await session.upload_file(started)
    yield render(session)


async def on_analyze(session):
    session = ensure_session(session)
    if not session.can_analyze:
        yield render(session, notice="Select a photo first, or wait for the previous analysis to finish.")
        return

    task = asyncio.create_task(session.begin_analysis())
    tracker = ProgressTracker()
    while not task.done():
        current = tracker.update("analyzing", snapshot(ANALYSIS_PLAN, session.elapsed()))
        yield render(session, analysis_progress=render_progress_html(ANALYSIS_PLAN, current, "🧠 Analyzing Your Space"))
        await asyncio.sleep(PROGRESS_TICK_SECONDS)

    await task
    yield render(session)


async def on_generate(style_id, custom_text, session):
    session = ensure_session(session)
    try:
        if style_id == CUSTOM_STYLE_ID:
            choice = StyleChoice.custom(custom_text or "")
        else:
            choice = StyleChoice.preset(style_id or "")
    except LandscapeError as e:
        yield render(session, notice=str(e))
        return

    if not session.can_generate:
        yield render(session, notice="A design is still being generated. Please wait.")
        return

    task = asyncio.create_task(session.choose_style(choice))
    tracker = ProgressTracker()
    title = f"🎨 Creating your {choice.label} design"
    while not task.done():
        current = tracker.update("generating", snapshot(GENERATION_PLAN, session.elapsed()))
        yield render(session, generation_progress=render_progress_html(GENERATION_PLAN, current, title))
        await asyncio.sleep(PROGRESS_TICK_SECONDS)

    state = await task
    download = None
    if state.stage == WorkflowStage.RESULTS:
        try:
            download = str(save_for_download(state.design.image_url, session_download_dir(session)))
        except Exception as e:
            logger.warning(f"Download preparation failed: {e}")
    yield render(session, download=download)


def on_back(session):
    session = ensure_session(session)
    try:
        session.back()
    except LandscapeError as e:
        return render(session, notice=str(e))
    return render(session)


def on_restart(session):
    session = ensure_session(session)
    session.restart()
    return render(session)


def on_start_new(session):
    session = ensure_session(session)
    session.restart()
    session.get_started()
    return render(session)


def on_slider(position, session):
    session = ensure_session(session)
    return comparison_image(session.state, position)


def on_style_change(style_id):
    return gr.update(visible=style_id == CUSTOM_STYLE_ID)


# --- THEME ---
studio_theme = gr.themes.Soft(
    primary_hue="green",
    secondary_hue="slate",
    neutral_hue="slate",
    spacing_size="md",
    radius_size="md",
).set(
    body_background_fill="#f7faf5",
    body_background_fill_dark="#161a15",
    background_fill_primary="#ffffff",
    background_fill_primary_dark="#22281f",
    border_color_primary="#dfe8da",
    border_color_primary_dark="#37402f",
    body_text_color="#2d2d2d",
    body_text_color_dark="#e8e6e3",
)

studio_css = """
.main-header { text-align: center; padding: 2rem 1rem 1rem; }
.progress-card { padding: 1rem; border: 1px solid #dfe8da; border-radius: 12px; background: #fff; }
.notice { padding: 0.75rem 1rem; border-radius: 8px; background: #fff8e6; border: 1px solid #f3d58a; }
"""


# --- GRADIO INTERFACE ---
def build_studio() -> gr.Blocks:
    with gr.Blocks(title=f"{settings.APP_NAME} - Landscape Design Studio", theme=studio_theme, css=studio_css) as demo:

        session_state = gr.State(None, delete_callback=close_session)

        # HEADER
        gr.HTML("""
            <div class="main-header">
                <h1 style="margin: 0; font-family: 'Georgia', serif; font-size: 2.4rem; font-weight: 400;">🌿 YardScape AI</h1>
                <p style="font-size: 1.1rem; color: #666; margin: 0.5rem auto 0; max-width: 650px;">
                    Upload a photo of your yard, pick a style, and see it redesigned.
                </p>
            </div>
        """)

        notice_md = gr.Markdown(visible=False, elem_classes=["notice"])

        # STAGE: HOME
        with gr.Group(visible=True) as home_group:
            gr.Markdown("### How it works\n1. 📷 Upload a yard photo\n2. 🧠 AI analyzes your space\n"
                        "3. 🎨 Choose a design style\n4. ✨ Compare before and after")
            get_started_btn = gr.Button("🚀 Get Started", variant="primary", size="lg")

        # STAGE: UPLOADING
        with gr.Group(visible=False) as upload_group:
            gr.Markdown("### 📷 Upload Your Yard Photo")
            photo_input = gr.Image(type="filepath", sources=["upload"], label="Yard photo")
            upload_status_md = gr.Markdown(UPLOAD_HINT)
            with gr.Row():
                upload_back_btn = gr.Button("← Back")
                analyze_btn = gr.Button("🔍 Analyze My Space", variant="primary", interactive=False)

        # STAGE: ANALYZING
        with gr.Group(visible=False) as analyzing_group:
            analysis_progress_html = gr.HTML()
            analyzing_cancel_btn = gr.Button("✖ Start Over")

        # STAGE: STYLE SELECTION
        with gr.Group(visible=False) as style_group:
            with gr.Row():
                with gr.Column(scale=1):
                    preview_img = gr.Image(label="Your space", interactive=False)
                    analysis_md = gr.Markdown()
                with gr.Column(scale=1):
                    gr.Markdown("### 🎨 Choose a Design Style")
                    style_radio = gr.Radio(choices=STYLE_CHOICES, value=PRESET_STYLES[0].id, label="Style")
                    custom_text = gr.Textbox(
                        label="Describe your dream yard",
                        placeholder="e.g. a shaded reading nook with ferns and a small water feature",
                        lines=3,
                        visible=False,
                    )
                    with gr.Row():
                        style_back_btn = gr.Button("← Start Over")
                        generate_btn = gr.Button("✨ Generate Design", variant="primary")

        # STAGE: GENERATING
        with gr.Group(visible=False) as generating_group:
            generation_progress_html = gr.HTML()
            generating_back_btn = gr.Button("← Back to Style Selection")

        # STAGE: RESULTS
        with gr.Group(visible=False) as results_group:
            gr.Markdown("### ✨ Your AI-Generated Design Is Ready!\nDrag the slider to compare your original space with the new design.")
            comparison_img = gr.Image(label="Before / After", interactive=False)
            comparison_slider = gr.Slider(0, 100, value=50, step=1, label="◀ Before · After ▶")
            download_file = gr.File(label="Download design", interactive=False)
            with gr.Row():
                results_back_btn = gr.Button("🎨 Try Another Style")
                start_new_btn = gr.Button("🔄 Start New Design", variant="primary")

        outputs = [
            session_state,
            home_group,
            upload_group,
            analyzing_group,
            style_group,
            generating_group,
            results_group,
            notice_md,
            preview_img,
            upload_status_md,
            analyze_btn,
            analysis_md,
            generate_btn,
            analysis_progress_html,
            generation_progress_html,
            comparison_img,
            download_file,
        ]

        get_started_btn.click(fn=on_get_started, inputs=[session_state], outputs=outputs)
        photo_input.upload(fn=on_file_selected, inputs=[photo_input, session_state], outputs=outputs)
        analyze_btn.click(fn=on_analyze, inputs=[session_state], outputs=outputs)
        generate_btn.click(fn=on_generate, inputs=[style_radio, custom_text, session_state], outputs=outputs)
        style_radio.change(fn=on_style_change, inputs=[style_radio], outputs=[custom_text])
        comparison_slider.change(fn=on_slider, inputs=[comparison_slider, session_state], outputs=[comparison_img])

        for button in (upload_back_btn, style_back_btn, generating_back_btn, results_back_btn):
            button.click(fn=on_back, inputs=[session_state], outputs=outputs)
        analyzing_cancel_btn.click(fn=on_restart, inputs=[session_state], outputs=outputs)
        start_new_btn.click(fn=on_start_new, inputs=[session_state], outputs=outputs)

    return demo


if __name__ == "__main__":
    build_studio().launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False,
    )
