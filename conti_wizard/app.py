from __future__ import annotations

import os
import sys
from datetime import datetime
from typing import List

import streamlit as st
from dotenv import load_dotenv

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Load environment
load_dotenv()

from conti_wizard.config import MAX_CUTS, MIN_CUTS, load_config  # noqa: E402
from conti_wizard.errors import describe_error  # noqa: E402
from conti_wizard.gui.pipeline import Pipeline  # noqa: E402
from conti_wizard.gui.state import AppState  # noqa: E402
from conti_wizard.services import gemini_models_probe  # noqa: E402
from conti_wizard.services.storage import (  # noqa: E402
    EXPORT_FILE_NAME,
    KeyStore,
    document_to_json,
    document_to_text,
)
from conti_wizard.types import GenerationRequest, StoryboardDocument  # noqa: E402


# --------------------------
# Page configuration & Styles
# --------------------------
st.set_page_config(
    page_title="Conti Wizard",
    layout="wide",
    page_icon="🎬",
    initial_sidebar_state="expanded",
)

st.markdown(
    """
<style>
  .main-header { background: linear-gradient(135deg, #f6d365 0%, #fda085 100%); color: #3b2f2f; padding: 1.25rem 1rem; border-radius: 10px; margin-bottom: 1.25rem; text-align: center; }
  .main-header h1 { margin: 0; font-size: 2.25rem; font-weight: 700; }
  .log-container { background: #2d3748; color: #e2e8f0; border-radius: 8px; padding: 0.75rem; font-family: 'Monaco','Menlo','Ubuntu Mono',monospace; font-size: 0.75rem; max-height: 320px; overflow-y: auto; }
</style>
""",
    unsafe_allow_html=True,
)


# --------------------------
# Session State & Utilities
# --------------------------
def _log(message: str) -> None:
    ts = datetime.now().strftime("%H:%M:%S")
    entry = f"[{ts}] {message}"
    st.session_state.logs.append(entry)


def _init_session() -> None:
    if "initialized" not in st.session_state:
        st.session_state.initialized = True
        st.session_state.cfg = load_config()
        st.session_state.logs = []  # type: List[str]
        st.session_state.key_store = KeyStore(st.session_state.cfg.key_file or None)
        saved_key = st.session_state.key_store.load()
        st.session_state.app_state = AppState(
            cfg=st.session_state.cfg,
            api_key=saved_key or st.session_state.cfg.gemini_api_key,
        )
        st.session_state.pipeline = Pipeline(st.session_state.cfg, on_log=_log)
        if saved_key:
            _log("🔑 Loaded the saved API key.")


def _header() -> None:
    st.markdown(
        """
        <div class="main-header">
            <h1>🎬 Conti Wizard</h1>
            <p>Turn a short synopsis into a cut-by-cut storyboard</p>
        </div>
        """,
        unsafe_allow_html=True,
    )


# --------------------------
# Sidebar: Key & Inputs
# --------------------------
def _sidebar() -> None:
    state: AppState = st.session_state.app_state

    st.subheader("🔑 API Key")
    state.api_key = st.text_input("Gemini API key", value=state.api_key, type="password").strip()
    col_save, col_check = st.columns(2)
    with col_save:
        if st.button("💾 Save Key", use_container_width=True):
            _save_key(state.api_key)
    with col_check:
        if st.button("🔗 Check", use_container_width=True, disabled=not state.api_key):
            ok, msg = gemini_models_probe(state.api_key, base_url=st.session_state.cfg.base_url)
            (st.success if ok else st.error)(msg)

    st.divider()

    st.subheader("📝 Story")
    state.synopsis = st.text_area("Synopsis", value=state.synopsis, height=180)
    state.cut_count = int(st.number_input("Number of cuts", min_value=MIN_CUTS, max_value=MAX_CUTS, value=state.cut_count, step=1))
    state.tone = st.text_input("Tone / mood", value=state.tone, help="e.g. warm, comic, noir")
    state.want_images = st.checkbox("Generate image prompts", value=state.want_images)

    st.button("🎬 Generate Storyboard", type="primary", use_container_width=True, on_click=_generate)


# --------------------------
# Main Content
# --------------------------
def _main_content() -> None:
    state: AppState = st.session_state.app_state
    if state.error:
        st.error(state.error)
    doc = state.document
    if doc is None:
        st.info("No storyboard yet. Enter a synopsis and generate.")
        return

    st.subheader(doc.title or "Untitled")
    st.caption(f"{doc.cut_count} cuts")
    if doc.summary:
        st.write(doc.summary)

    for scene in doc.scenes:
        with st.expander(f"Cut {scene.cut}. {scene.scene_title}", expanded=True):
            if scene.image_url:
                st.image(scene.image_url, caption=f"scene {scene.cut}")
            st.markdown(f"**📝 Description**  \n{scene.description}")
            st.markdown("**💬 Dialogue**")
            st.text(scene.dialogue)
            if scene.image_prompt:
                st.markdown("**🎨 Image prompt**")
                st.text(scene.image_prompt)

    _render_exports(doc)


def _render_exports(doc: StoryboardDocument) -> None:
    st.divider()
    col_copy, col_dl = st.columns([2, 1])
    with col_copy:
        with st.expander("📋 Copy all", expanded=False):
            st.code(document_to_text(doc), language=None)
    with col_dl:
        st.download_button(
            label="💾 Download JSON",
            data=document_to_json(doc).encode("utf-8"),
            file_name=EXPORT_FILE_NAME,
            mime="application/json",
            use_container_width=True,
        )


# --------------------------
# Right Panel: Activity Log
# --------------------------
def _right_panel() -> None:
    st.subheader("📊 Progress")
    pipeline: Pipeline = st.session_state.pipeline
    st.caption(pipeline.stage.value.capitalize())

    st.subheader("📋 Activity Log")
    logs: List[str] = st.session_state.get("logs", [])
    if logs:
        st.markdown("<div class=\"log-container\">" + "<br>".join(logs[-40:]) + "</div>", unsafe_allow_html=True)
        if st.button("🗑️ Clear Logs", use_container_width=True):
            st.session_state.logs = []
    else:
        st.caption("No activity yet")


# --------------------------
# Actions
# --------------------------
def _save_key(key: str) -> None:
    if not key:
        st.warning("Please enter an API key.")
        return
    if st.session_state.key_store.save(key):
        _log("🔑 API key saved.")
        st.success("API key saved.")
    else:
        _log("❌ Saving the API key failed.")
        st.error("Could not save the API key.")


def _generate() -> None:
    state: AppState = st.session_state.app_state
    state.error = None
    if not state.api_key:
        state.error = "An API key is required."
        return
    try:
        request = GenerationRequest.from_inputs(state.synopsis, state.cut_count, state.tone, state.want_images)
    except ValueError:
        state.error = "Please enter a synopsis."
        return

    state.document = None
    state.cancel_event.clear()
    try:
        with st.spinner("Asking the model…"):
            state.document = st.session_state.pipeline.generate(request, api_key=state.api_key, cancel=state.cancel_event)
        st.success("Done! Check the storyboard below.")
    except Exception as e:  # noqa: BLE001
        _log(f"❌ Generation failed: {e!r}")
        state.error = describe_error(e)


# --------------------------
# Entry Point
# --------------------------
def main() -> None:
    _init_session()
    _header()

    col1, col2, col3 = st.columns([1.0, 2.6, 0.8])
    with col1:
        _sidebar()
    with col2:
        _main_content()
    with col3:
        _right_panel()


if __name__ == "__main__":
    main()
