#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sheet_chat.config import load_settings  # noqa: E402
from sheet_chat.records import RecordSet  # noqa: E402
from sheet_chat.search import ALL_FIELDS, summarize_search  # noqa: E402
from sheet_chat.session import USER, ChatSession, Message  # noqa: E402

UPLOAD_EXTS = ["xlsx", "xls", "csv", "xlsm", "ods"]


def ensure_state() -> None:
    if "chat" not in st.session_state:
        st.session_state["chat"] = ChatSession(load_settings())
    st.session_state.setdefault("processing", False)
    st.session_state.setdefault("pending_upload", None)
    st.session_state.setdefault("search_text", "")
    st.session_state.setdefault("search_field", ALL_FIELDS)


def chat() -> ChatSession:
    return st.session_state["chat"]


def render_preview(preview: dict) -> None:
    if not preview["total"]:
        st.info("No data to extract")
        return
    st.dataframe(pd.DataFrame(preview["rows"], columns=preview["headers"]), width="stretch", hide_index=True)
    if preview["note"]:
        st.caption(preview["note"])
    st.caption(preview["fields_label"])


def render_download(records: RecordSet, key: str, label: str = "Download CSV") -> None:
    artifact = chat().export_download(records)
    st.download_button(
        label,
        data=artifact["data"],
        file_name=artifact["file_name"],
        mime=artifact["mime"],
        disabled=not records,
        key=key,
    )


def render_message(message: Message) -> None:
    role = "user" if message.role == USER else "assistant"
    with st.chat_message(role):
        if message.error:
            st.error(message.content)
        else:
            st.markdown(message.content)
        st.caption(message.timestamp.strftime("%H:%M:%S"))
        if message.records is not None:
            st.markdown(f"**Extracted Data ({len(message.records)} records)**")
            render_preview(chat().preview(message.records))
            render_download(message.records, key=f"download_message_{message.id}")


def render_timeline() -> None:
    for message in chat().messages:
        render_message(message)


def render_upload_panel(disabled: bool) -> Optional[object]:
    st.subheader("Upload")
    uploaded = st.file_uploader(
        "Excel or CSV file",
        type=UPLOAD_EXTS,
        accept_multiple_files=False,
        key="upload_input",
        disabled=disabled,
    )
    st.caption(f"Files above {chat().settings.max_upload_mb} MB are rejected.")
    submit = st.button("Process file", type="primary", width="stretch", disabled=disabled or uploaded is None)
    return uploaded if submit else None


def render_search_panel() -> None:
    st.subheader("Search")
    session = chat()
    options = session.field_options()
    if st.session_state["search_field"] not in options:
        st.session_state["search_field"] = ALL_FIELDS

    text = st.text_input("Search records", key="search_text", placeholder="Type to filter...")
    field = st.selectbox("Field", options=options, key="search_field")

    matches = session.search(text, field)
    summary = summarize_search(matches, len(session.records), text)
    st.caption(summary["label"])
    if summary["term"]:
        st.caption(f'Filtering by "{summary["term"]}"')

    if not session.records:
        st.info("Upload a file to search its records.")
        return
    if not matches:
        st.info("No results found")
        return
    st.dataframe(pd.DataFrame(matches.to_list()), width="stretch", hide_index=True)
    render_download(matches, key="download_search", label="Download results as CSV")


def render_uploads() -> None:
    uploads = chat().uploads
    if not uploads:
        return
    metrics = st.columns(2)
    metrics[0].metric("Files processed", len(uploads))
    metrics[1].metric("Records", len(chat().records))
    for upload in uploads:
        with st.expander(f"{upload.filename or 'file'}  •  {upload.detected_format or '-'}", expanded=False):
            st.caption(f"{len(upload.records)} records")
            if upload.warnings:
                st.warning(" | ".join(upload.warnings))


def set_visuals() -> None:
    st.set_page_config(page_title="sheet-chat", page_icon="💬", layout="wide", initial_sidebar_state="collapsed")
    st.markdown(
        """
        <style>
        :root {
            --sc-bg: #ffffff;
            --sc-bg-secondary: #f6f8fb;
            --sc-text: #23262f;
            --sc-border: #e3e7ef;
            --sc-primary: #2f6fed;
        }
        @media (prefers-color-scheme: dark) {
            :root {
                --sc-bg: #17191f;
                --sc-bg-secondary: #1f222b;
                --sc-text: #eef0f5;
                --sc-border: rgba(70, 74, 90, 0.8);
                --sc-primary: #6c9cff;
            }
        }
        .stApp {
            background: linear-gradient(180deg, var(--sc-bg) 0%, var(--sc-bg-secondary) 100%);
            color: var(--sc-text);
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        }
        .block-container {
            padding-top: 2rem;
            padding-bottom: 2rem;
            max-width: 1200px;
        }
        [data-testid="stDecoration"] {
            display: none !important;
        }
        .stExpander, .stAlert, .stDataFrame, [data-testid="stChatMessage"] {
            border-radius: 14px;
            border: 1px solid var(--sc-border) !important;
            overflow: hidden;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    set_visuals()
    ensure_state()

    st.title("sheet-chat")
    st.caption("Upload an Excel or CSV file, search its records, and download what you find as CSV.")

    processing = st.session_state["processing"]
    left, right = st.columns([3, 2])

    with right:
        uploaded = render_upload_panel(disabled=processing)
        render_uploads()
        render_search_panel()

    if uploaded is not None:
        st.session_state["pending_upload"] = uploaded
        st.session_state["processing"] = True
        st.rerun()

    with left:
        render_timeline()
        if processing:
            st.info("Processing file...")
            pending = st.session_state["pending_upload"]
            try:
                chat().handle_upload(pending, pending.name)
            finally:
                st.session_state["pending_upload"] = None
                st.session_state["processing"] = False
            st.rerun()

    prompt = st.chat_input("Type a message...", disabled=processing)
    if prompt:
        chat().send_message(prompt)
        st.rerun()


if __name__ == "__main__":
    main()
