"""Client-side tools: API client, kanban board state and the Streamlit UI."""
