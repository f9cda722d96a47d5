import os
import io
import requests
import streamlit as st

API_BASE = os.getenv("OFFICE_PDF_API_BASE", os.getenv("API_BASE", "http://localhost:3000")).rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("OFFICE_PDF_UI_TIMEOUT", "300"))


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"{resp.status_code} {resp.text}"
    return f"{resp.status_code} {data.get('error', resp.text)}"


def _convert(uploaded_file: io.BytesIO) -> bytes | None:
    try:
        files = {"file": (uploaded_file.name, uploaded_file.getvalue(), uploaded_file.type or "application/octet-stream")}
        resp = requests.post(f"{API_BASE}/convert", files=files, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"Conversion failed: {_error_message(resp)}"
        return None
    return resp.content


def _reset_state():
    for key in ["pdf", "pdf_name", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear any previously uploaded file widget state
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def main() -> None:
    st.set_page_config(page_title="Office PDF Service", page_icon="📄", layout="centered")
    st.title("📄 Office PDF Service")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload a document (DOCX, ODT, XLSX, PPTX, TXT, etc.)",
        key=f"uploader-{st.session_state['upload_key']}",
    )

    if uploaded and st.button("Convert to PDF", type="primary"):
        st.session_state.pop("error", None)
        with st.spinner("Converting..."):
            pdf = _convert(uploaded)
        if pdf is not None:
            st.session_state["pdf"] = pdf
            st.session_state["pdf_name"] = os.path.splitext(uploaded.name)[0] + ".pdf"

    if "pdf" in st.session_state:
        st.success("Conversion complete!")
        st.download_button(
            label="Download PDF",
            data=st.session_state["pdf"],
            file_name=st.session_state.get("pdf_name", "output.pdf"),
            mime="application/pdf",
        )

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
