"""
Client Review Dashboard.

Reviewer-facing view of every client: dossier, raised red flags, the
interview transcript, scoring and the final status decision.
"""

import os
from datetime import datetime

import httpx
import streamlit as st

# Configuration
API_BASE_URL = os.getenv("VETTING_API_BASE_URL", "http://localhost:8000")

STATUS_OPTIONS = [
    "pending",
    "under_review",
    "approved",
    "rejected",
    "in_progress",
    "interview_completed",
]

st.set_page_config(
    page_title="Client Review",
    page_icon="",
    layout="wide",
)


def init_session_state():
    """Initialize session state variables."""
    if "clients" not in st.session_state:
        st.session_state.clients = []
    if "selected_client" not in st.session_state:
        st.session_state.selected_client = None
    if "status_filter" not in st.session_state:
        st.session_state.status_filter = "all"
    if "error_message" not in st.session_state:
        st.session_state.error_message = None
    if "success_message" not in st.session_state:
        st.session_state.success_message = None


def fetch_clients():
    """Fetch the client list."""
    params = {}
    if st.session_state.status_filter != "all":
        params["status"] = st.session_state.status_filter
    try:
        response = httpx.get(f"{API_BASE_URL}/v1/clients", params=params, timeout=30.0)
        response.raise_for_status()
        st.session_state.clients = response.json()
        return True
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Failed to fetch clients: {e}"
        return False


def fetch_dossier(client_id: int):
    """Fetch a client's dossier."""
    try:
        response = httpx.get(f"{API_BASE_URL}/v1/clients/{client_id}/dossier", timeout=30.0)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Failed to fetch dossier: {e}"
        return None


def fetch_transcripts(client_id: int) -> list[dict]:
    """Fetch every conversation for a client with its messages."""
    try:
        response = httpx.get(
            f"{API_BASE_URL}/v1/conversations",
            params={"client_id": client_id},
            timeout=30.0,
        )
        response.raise_for_status()
        conversations = response.json()
        for conversation in conversations:
            messages = httpx.get(
                f"{API_BASE_URL}/v1/conversations/{conversation['conversation_id']}/messages",
                timeout=30.0,
            )
            messages.raise_for_status()
            conversation["messages"] = messages.json()
        return conversations
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Failed to fetch transcripts: {e}"
        return []


def post_action(path: str, success: str, json: dict | None = None, method: str = "POST") -> bool:
    """Call an action endpoint and record the outcome."""
    try:
        response = httpx.request(method, f"{API_BASE_URL}{path}", json=json, timeout=120.0)
        response.raise_for_status()
        st.session_state.success_message = success
        return True
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Request failed: {e}"
        return False


def render_dashboard():
    """Render the client list."""
    st.title("Client Review Dashboard")

    col1, col2 = st.columns([2, 1])
    with col1:
        status_filter = st.selectbox(
            "Status",
            ["all"] + STATUS_OPTIONS,
            index=(["all"] + STATUS_OPTIONS).index(st.session_state.status_filter),
        )
        if status_filter != st.session_state.status_filter:
            st.session_state.status_filter = status_filter
            fetch_clients()
    with col2:
        if st.button("Refresh", use_container_width=True):
            fetch_clients()

    st.markdown("---")

    clients = st.session_state.clients
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Clients", len(clients))
    with col2:
        st.metric("Awaiting Evaluation", sum(c["status"] == "interview_completed" for c in clients))
    with col3:
        st.metric("Approved", sum(c["status"] == "approved" for c in clients))
    with col4:
        st.metric("Rejected", sum(c["status"] == "rejected" for c in clients))

    st.markdown("---")

    if not clients:
        st.info("No clients yet. Click 'Refresh' to check again.")
        return

    for client in clients:
        with st.container():
            col1, col2, col3, col4 = st.columns([3, 2, 1, 1])
            name = " ".join(filter(None, [client.get("first_name"), client.get("last_name")]))
            with col1:
                st.write(f"**{name or client['email']}**  \n{client['email']}")
            with col2:
                st.write(f"**Status:** {client['status']}")
            with col3:
                st.write(f"**Score:** {client['overall_score']:.0f}")
            with col4:
                if st.button("Review", key=f"review_{client['client_id']}"):
                    st.session_state.selected_client = client["client_id"]
                    st.rerun()

            st.markdown("---")


def render_review():
    """Render the review screen for one client."""
    client_id = st.session_state.selected_client
    dossier = fetch_dossier(client_id)

    if not dossier:
        st.error("Failed to load client.")
        if st.button("Back to Dashboard"):
            st.session_state.selected_client = None
            st.rerun()
        return

    client = dossier["client"]

    col1, col2 = st.columns([3, 1])
    with col1:
        st.title(client.get("first_name") or client["email"])
        st.caption(f"{client['email']} | {dossier['conversation_count']} interview(s)")
    with col2:
        if st.button("Back to Clients"):
            st.session_state.selected_client = None
            fetch_clients()
            st.rerun()

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Status", client["status"])
    with col2:
        st.metric("Overall Score", f"{client['overall_score']:.1f}")
    with col3:
        created_at = datetime.fromisoformat(client["created_at"].replace("Z", "+00:00"))
        st.metric("Created", created_at.strftime("%Y-%m-%d"))

    st.markdown("---")

    dossier_tab, flags_tab, transcript_tab, actions_tab = st.tabs(
        ["Dossier", "Red Flags", "Transcript", "Actions"]
    )

    with dossier_tab:
        entries = dossier["entries"]
        if not entries:
            st.info("No dossier entries yet.")
        categories = sorted({e["category"] for e in entries})
        for category in categories:
            st.subheader(category.replace("_", " ").title())
            for entry in (e for e in entries if e["category"] == category):
                st.write(
                    f"**{entry['key_name']}:** {entry['value']} "
                    f"_(confidence {entry['confidence_score']:.2f})_"
                )

    with flags_tab:
        if not dossier["red_flags"]:
            st.success("No red flags raised.")
        for flag in dossier["red_flags"]:
            st.warning(
                f"**{flag['name']}** ({flag['severity']}): {flag['reason']} "
                f"_(confidence {flag['confidence']:.2f})_"
            )

        st.markdown("---")
        st.markdown("Scan the client's answers for a custom wordlist. Nothing is recorded.")
        with st.form("keyword_scan_form"):
            wordlist = st.text_area("Keywords (one per line)", height=100)
            submitted = st.form_submit_button("Scan Answers")
            if submitted and wordlist.strip():
                try:
                    response = httpx.post(
                        f"{API_BASE_URL}/v1/clients/{client_id}/keyword-scan",
                        json={"wordlist": wordlist, "format": "txt"},
                        timeout=30.0,
                    )
                    response.raise_for_status()
                    result = response.json()
                    if not result["matches"]:
                        st.info(f"No matches for {result['keywords_checked']} keyword(s).")
                    for match in result["matches"]:
                        st.write(f"**{match['keyword']}**: {match['match_count']} answer(s)")
                        for answer in match["answers"]:
                            st.caption(f"{answer['question_text']}: {answer['answer']}")
                except httpx.HTTPError as e:
                    st.error(f"Scan failed: {e}")

    with transcript_tab:
        for conversation in fetch_transcripts(client_id):
            st.subheader(
                f"Interview {conversation['conversation_id']} ({conversation['status']})"
            )
            for message in conversation["messages"]:
                with st.chat_message(message["role"]):
                    st.markdown(message["content"])

    with actions_tab:
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Run Evaluation", type="primary", use_container_width=True):
                if post_action(f"/v1/clients/{client_id}/evaluate", "Evaluation complete"):
                    st.rerun()
        with col2:
            if st.button("Scan for Red Flags", use_container_width=True):
                if post_action(f"/v1/clients/{client_id}/red-flags/scan", "Red flag scan complete"):
                    st.rerun()

        st.markdown("---")
        st.subheader("Decision")
        with st.form("status_form"):
            status = st.selectbox(
                "Status",
                STATUS_OPTIONS,
                index=STATUS_OPTIONS.index(client["status"]),
            )
            submitted = st.form_submit_button("Save Status", type="primary")
            if submitted:
                if post_action(
                    f"/v1/clients/{client_id}/status",
                    f"Status set to {status}",
                    json={"status": status},
                    method="PUT",
                ):
                    st.rerun()


def main():
    """Main application entry point."""
    init_session_state()

    # Show messages
    if st.session_state.error_message:
        st.error(st.session_state.error_message)
        st.session_state.error_message = None

    if st.session_state.success_message:
        st.success(st.session_state.success_message)
        st.session_state.success_message = None

    # Initial fetch
    if not st.session_state.clients:
        fetch_clients()

    if st.session_state.selected_client:
        render_review()
    else:
        render_dashboard()


if __name__ == "__main__":
    main()
