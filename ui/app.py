"""
Minimal Streamlit host for PDF Chat.
"""

import asyncio
import sys
from pathlib import Path
from typing import List

import pandas as pd

import streamlit as st  # type: ignore
from dotenv import load_dotenv

# Ensure the project root is on sys.path when launched via `streamlit run ui/app.py`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pdf_chat.agents.conversation import TurnStatus  # noqa
from pdf_chat.config import settings  # noqa
from pdf_chat.context.prompts import ImageAttachment  # noqa
from pdf_chat.logging_config import configure_logging  # noqa
from pdf_chat.plugin import OTHER_VIEW, PDF_VIEW, PdfChatPlugin  # noqa
from pdf_chat.session.state import IngestionState, input_gate_for  # noqa
from pdf_chat.tools.chunking import DocumentChunk  # noqa
from pdf_chat.tools.ingest import DocumentHandle  # noqa

# Load environment variables from .env at repo root so Streamlit picks up keys.
load_dotenv(ROOT / ".env")
configure_logging()

UPLOAD_DIR = settings.data_dir / "uploads"

st.set_page_config(page_title="PDF Chat", layout="wide")
st.title("PDF Chat (Gemini)")


def get_plugin() -> PdfChatPlugin:
    """One plugin (and one chat controller) per browser session."""
    if "plugin" not in st.session_state:
        settings.load_preferences()
        notices: List[str] = []
        plugin = PdfChatPlugin(config=settings, notify=notices.append)
        st.session_state.notices = notices
        st.session_state.plugin = plugin
        st.session_state.controller = plugin.open_chat()
        st.session_state.labels = {}
    return st.session_state.plugin


def flush_notices() -> None:
    notices = st.session_state.get("notices", [])
    while notices:
        st.toast(notices.pop(0))


def save_upload(uploaded_file) -> Path:
    """Persist the uploaded PDF so ingestion can read it and key its cache by path."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    path = UPLOAD_DIR / uploaded_file.name
    with path.open("wb") as f:
        f.write(uploaded_file.getbuffer())
    return path


def render_chunk_summary(chunks: List[DocumentChunk]) -> None:
    """Show what has been embedded for the active PDF."""
    if not chunks:
        st.info("No embedded chunks for the active PDF.")
        return

    by_page = {}
    for chunk in chunks:
        entry = by_page.setdefault(chunk.page, {"chunks": 0, "characters": 0})
        entry["chunks"] += 1
        entry["characters"] += len(chunk.text)

    by_page_df = pd.DataFrame.from_dict(
        by_page, orient="index").reset_index().rename(columns={"index": "page"})
    st.success(
        f"{len(chunks)} chunk(s) across {len(by_page)} page(s) ready for chat.")
    st.dataframe(by_page_df.sort_values("page"), hide_index=True)


def render_sidebar(plugin: PdfChatPlugin) -> None:
    with st.sidebar:
        st.header("Settings")
        if not settings.resolve_api_key():
            st.error(f"Set {settings.api_key_env} in your environment or .env.")
        if st.button("Load available models"):
            try:
                st.session_state.chat_models = asyncio.run(plugin.list_chat_models())
                st.session_state.embedding_models = asyncio.run(plugin.list_embedding_models())
            except Exception as exc:  # pragma: no cover - defensive UI guard
                st.warning(f"Unable to list models: {exc}")
        chat_models = st.session_state.get("chat_models") or [settings.chat_model]
        embedding_models = st.session_state.get("embedding_models") or [settings.embedding_model]
        chat_model = st.selectbox(
            "Chat model", chat_models,
            index=chat_models.index(settings.chat_model) if settings.chat_model in chat_models else 0)
        embedding_model = st.selectbox(
            "Embedding model", embedding_models,
            index=embedding_models.index(settings.embedding_model) if settings.embedding_model in embedding_models else 0)
        concurrency = st.slider("Embedding concurrency", 1, 50, settings.concurrency)
        if (chat_model, embedding_model, concurrency) != (
            settings.chat_model, settings.embedding_model, settings.concurrency
        ):
            settings.chat_model = chat_model
            settings.embedding_model = embedding_model
            settings.concurrency = concurrency
            settings.save_preferences()


def ingest_with_progress(plugin: PdfChatPlugin, document: DocumentHandle) -> None:
    status_line = st.empty()

    def show(state: IngestionState) -> None:
        gate = input_gate_for(state, plugin.state.has_document)
        if gate.status_text:
            status_line.caption(gate.status_text)

    unregister = plugin.register_state_listener(show)
    try:
        with st.spinner(f"Preparing {document.name}..."):
            asyncio.run(plugin.on_active_view_changed(PDF_VIEW, document))
    finally:
        unregister()


def render_history(controller) -> None:
    labels = st.session_state.labels
    for index, turn in enumerate(controller.history):
        with st.chat_message("user" if turn.role == "user" else "assistant"):
            st.markdown(turn.text or "_(image)_")
            if index in labels:
                st.caption(labels[index])


def main():
    plugin = get_plugin()
    controller = st.session_state.controller
    render_sidebar(plugin)

    upload = st.file_uploader("Open a PDF", type=["pdf"])
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Close PDF"):
            asyncio.run(plugin.on_active_view_changed(OTHER_VIEW))
    with col2:
        if st.button("Clear chat"):
            controller.clear_history()
            st.session_state.labels = {}
            st.toast("Chat history has been cleared.")

    if upload is not None:
        document = DocumentHandle(str(save_upload(upload)))
        ingest_with_progress(plugin, document)
    flush_notices()

    render_chunk_summary(plugin.get_active_chunks())
    st.caption(controller.gate.status_text or "")

    render_history(controller)
    image = st.file_uploader(
        "Attach an image of the PDF (optional)", type=["png", "jpg", "jpeg"], key="snippet")
    prompt = st.chat_input(controller.gate.placeholder, disabled=not controller.input_enabled)
    if prompt is not None:
        attachment = None
        if image is not None:
            attachment = ImageAttachment(data=image.getvalue(), mime_type=image.type or "image/png")
        with st.spinner("Thinking..."):
            result = asyncio.run(controller.send_turn(prompt, attachment))
        if result.status is TurnStatus.ANSWERED:
            if result.similarity_label:
                st.session_state.labels[len(controller.history) - 1] = result.similarity_label
            st.rerun()
        elif result.status is not TurnStatus.REJECTED:
            st.error(result.message)
        flush_notices()


if __name__ == "__main__":
    main()
