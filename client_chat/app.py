"""
Client Interview Interface.

The applicant-facing chat. Scores, red flags and dossier entries are
never shown here.
"""

import os

import httpx
import streamlit as st

# Configuration
API_BASE_URL = os.getenv("VETTING_API_BASE_URL", "http://localhost:8000")

st.set_page_config(
    page_title="Client Interview",
    page_icon="",
    layout="centered",
)


def init_session_state():
    """Initialize session state variables."""
    if "conversation_id" not in st.session_state:
        st.session_state.conversation_id = None
    if "messages" not in st.session_state:
        st.session_state.messages = []
    if "waiting_for_additional_info" not in st.session_state:
        st.session_state.waiting_for_additional_info = False
    if "interview_complete" not in st.session_state:
        st.session_state.interview_complete = False
    if "error_message" not in st.session_state:
        st.session_state.error_message = None


def start_conversation(email: str, first_name: str, last_name: str) -> bool:
    """Start a new interview."""
    try:
        response = httpx.post(
            f"{API_BASE_URL}/v1/conversations/start",
            json={
                "email": email,
                "first_name": first_name or None,
                "last_name": last_name or None,
            },
            timeout=30.0,
        )
        response.raise_for_status()
        data = response.json()
        st.session_state.conversation_id = data["conversation_id"]
        st.session_state.messages = [{"role": "assistant", "content": data["greeting"]}]
        return True
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Failed to start interview: {e}"
        return False


def send_message(text: str) -> bool:
    """Send a message and record the reply."""
    try:
        response = httpx.post(
            f"{API_BASE_URL}/v1/conversations/{st.session_state.conversation_id}/messages",
            json={"message": text},
            timeout=60.0,
        )
        response.raise_for_status()
        data = response.json()

        st.session_state.messages.append({"role": "user", "content": text})
        st.session_state.messages.append(
            {"role": "assistant", "content": data["assistant_message"]}
        )
        st.session_state.waiting_for_additional_info = data["waiting_for_additional_info"]
        st.session_state.interview_complete = data["conversation_ended"]
        return True
    except httpx.HTTPError as e:
        st.session_state.error_message = f"Failed to send message: {e}"
        return False


def reset_interview():
    st.session_state.conversation_id = None
    st.session_state.messages = []
    st.session_state.waiting_for_additional_info = False
    st.session_state.interview_complete = False
    st.session_state.error_message = None


def render_welcome():
    """Render the welcome/start screen."""
    st.title("Client Interview")

    st.markdown("""
    Thank you for your interest in working with us.

    We'd like to get to know you through a short interview. Your answers
    help us understand your situation and goals.

    **Please note:**
    - Answer each question as openly as you can
    - After each answer you can add more detail, or reply "no" to move on
    - A member of our team will review your interview
    """)

    st.markdown("---")

    with st.form("start_form"):
        email = st.text_input("Email address")
        col1, col2 = st.columns(2)
        with col1:
            first_name = st.text_input("First name")
        with col2:
            last_name = st.text_input("Last name")

        submitted = st.form_submit_button("Begin Interview", type="primary")

        if submitted:
            if "@" not in email:
                st.error("Please enter a valid email address.")
            elif start_conversation(email.strip(), first_name.strip(), last_name.strip()):
                st.rerun()


def render_chat():
    """Render the conversation so far and the input box."""
    st.title("Client Interview")

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])

    if st.session_state.interview_complete:
        st.success("Your interview is complete. Thank you for your time.")
        if st.button("Start New Interview"):
            reset_interview()
            st.rerun()
        return

    if st.session_state.waiting_for_additional_info:
        col1, col2, _ = st.columns([1, 1, 2])
        with col1:
            if st.button("Yes", use_container_width=True, type="primary"):
                if send_message("yes"):
                    st.rerun()
        with col2:
            if st.button("No", use_container_width=True):
                if send_message("no"):
                    st.rerun()

    text = st.chat_input("Type your answer...")
    if text and text.strip():
        if send_message(text.strip()):
            st.rerun()


def main():
    """Main application entry point."""
    init_session_state()

    # Show error if present
    if st.session_state.error_message:
        st.error(st.session_state.error_message)
        st.session_state.error_message = None

    if st.session_state.conversation_id:
        render_chat()
    else:
        render_welcome()


if __name__ == "__main__":
    main()
