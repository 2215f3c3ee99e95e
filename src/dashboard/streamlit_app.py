"""Streamlit dashboard for RE-CRM.

Requires: API server running at http://localhost:4000
Start API: cd src && python cli.py server
Start Dashboard: streamlit run src/dashboard/streamlit_app.py
"""
from __future__ import annotations

import os
import sys

# Add src/ to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd
import streamlit as st

from core.config import get_settings
from core.models import STAGES, ClientStatus, Currency, LeadSource, PropertyStatus, TaskPriority, TaskStatus
from dashboard.api_client import APIError, CRMClient
from dashboard.kanban import KanbanBoard

# Configuration
API_BASE_URL = os.environ.get("API_BASE_URL", get_settings().dashboard_api_url)

st.set_page_config(
    page_title="RE-CRM",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# API Helper Functions
# =============================================================================


def _store_tokens(access: Optional[str], refresh: Optional[str]) -> None:
    st.session_state["access_token"] = access
    st.session_state["refresh_token"] = refresh


def get_client() -> CRMClient:
    """API client bound to the tokens kept in the Streamlit session."""
    return CRMClient(
        API_BASE_URL,
        access_token=st.session_state.get("access_token"),
        refresh_token=st.session_state.get("refresh_token"),
        on_tokens=_store_tokens,
    )


def api_call(fn, *args: Any, **kwargs: Any) -> Any:
    """Run one client call and turn failures into Streamlit messages."""
    try:
        return fn(*args, **kwargs)
    except httpx.TransportError:
        st.error(f"❌ Cannot connect to API at {API_BASE_URL}. Is the server running?")
        st.info("💡 Start the API server with: `cd src && python cli.py server`")
    except APIError as e:
        st.error(f"API Error: {e.status_code} - {e.message}")
        for item in e.errors:
            st.caption(f"{item.get('field')}: {item.get('message')}")
    return None


def to_frame(rows: List[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
    """Table of the given columns; nested dicts are reduced to their display name."""
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    for col in ("agent", "client", "property", "owner"):
        if col in df.columns:
            df[col] = df[col].apply(
                lambda v: (v.get("name") or v.get("fullName") or v.get("title")) if isinstance(v, dict) else v
            )
    available = [c for c in columns if c in df.columns]
    return df[available]


def _due_iso(day, at: time) -> str:
    return datetime.combine(day, at, tzinfo=timezone.utc).isoformat()


# =============================================================================
# Login
# =============================================================================


def render_login() -> None:
    st.title("🏠 RE-CRM")
    st.caption("Sign in to continue")

    with st.form("login_form"):
        email = st.text_input("Email", placeholder="admin@recrm.com")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary", use_container_width=True)

    if submitted:
        with get_client() as client:
            user = api_call(client.login, email, password)
        if user:
            st.session_state["user"] = user
            st.rerun()


# =============================================================================
# Sidebar
# =============================================================================


def render_sidebar(user: Dict[str, Any]) -> None:
    with st.sidebar:
        st.title("🏠 RE-CRM")
        st.write(f"**{user['name']}**")
        st.caption(f"{user['email']} · {user['role']}")

        if st.button("Sign out", use_container_width=True):
            for key in ("user", "access_token", "refresh_token"):
                st.session_state.pop(key, None)
            st.rerun()

        st.divider()
        st.subheader("🔌 System Status")
        try:
            with httpx.Client(timeout=5.0) as http:
                online = http.get(API_BASE_URL.rsplit("/api", 1)[0] + "/health").status_code == 200
        except httpx.HTTPError:
            online = False
        if online:
            st.success("✅ API Online")
        else:
            st.error("❌ API Offline")
            st.caption(f"Expected at: {API_BASE_URL}")


# =============================================================================
# Tab 1: Dashboard
# =============================================================================


def render_dashboard_tab(client: CRMClient) -> None:
    st.header("📊 Dashboard")
    period = st.selectbox("Period (days)", [7, 30, 90, 365], index=1, key="dash_period")

    metrics = api_call(client.dashboard_metrics, period)
    if not metrics:
        return

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("New Leads", metrics["newLeads"])
    col2.metric("Total Deals", metrics["totalDeals"])
    col3.metric("Conversion Rate", f"{metrics['conversionRate']}%")
    col4.metric("Overdue Tasks", metrics["overdueTasks"])

    col1, col2 = st.columns(2)
    col1.metric("Closed Deals", metrics["closedDeals"])
    col2.metric("Pipeline Value", f"{metrics['pipelineValue']:,.0f}")

    st.divider()
    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Deals by Stage")
        stages = pd.DataFrame(
            {"Stage": list(metrics["dealsByStage"].keys()), "Deals": list(metrics["dealsByStage"].values())}
        )
        st.bar_chart(stages.set_index("Stage"))
    with col2:
        st.subheader("Lead Sources")
        if metrics["leadSources"]:
            sources = pd.DataFrame(metrics["leadSources"])
            st.bar_chart(sources.set_index("source"))
        else:
            st.info("No leads in this period")

    st.divider()
    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Upcoming Tasks")
        upcoming = to_frame(metrics["upcomingTasks"], ["title", "dueAt", "priority", "status", "client"])
        if upcoming.empty:
            st.info("Nothing due in the next two days")
        else:
            st.dataframe(upcoming, use_container_width=True, hide_index=True)
    with col2:
        st.subheader("Recent Activity")
        recent = metrics["recentActivities"]
        if recent:
            df = pd.DataFrame(recent)
            df["user"] = df["user"].apply(lambda v: v.get("name") if isinstance(v, dict) else v)
            st.dataframe(df[["type", "content", "user", "createdAt"]], use_container_width=True, hide_index=True)
        else:
            st.info("No activity yet")


# =============================================================================
# Tab 2: Clients
# =============================================================================


def render_clients_tab(client: CRMClient) -> None:
    st.header("👥 Clients")

    col1, col2, col3 = st.columns([3, 1, 1])
    search = col1.text_input("Search by name, email or phone", key="client_search")
    status = col2.selectbox("Status", ["All"] + [s.value for s in ClientStatus], key="client_status")
    source = col3.selectbox("Lead Source", ["All"] + [s.value for s in LeadSource], key="client_source")

    result = api_call(
        client.list_clients,
        search=search or None,
        status=None if status == "All" else status,
        leadSource=None if source == "All" else source,
        limit=100,
    )
    if result:
        st.caption(f"{result['total']} clients")
        df = to_frame(result["data"], ["fullName", "phone", "email", "status", "leadSource", "agent", "tags", "createdAt"])
        st.dataframe(df, use_container_width=True, hide_index=True)

    with st.expander("➕ New Client"):
        with st.form("new_client_form", clear_on_submit=True):
            full_name = st.text_input("Full Name *")
            phone = st.text_input("Phone *")
            email = st.text_input("Email")
            lead_source = st.selectbox("Lead Source", [s.value for s in LeadSource])
            tags = st.text_input("Tags (comma separated)")
            notes = st.text_area("Notes")
            if st.form_submit_button("Create", type="primary"):
                created = api_call(
                    client.create_client,
                    {
                        "fullName": full_name,
                        "phone": phone,
                        "email": email,
                        "leadSource": lead_source,
                        "tags": [t.strip() for t in tags.split(",") if t.strip()],
                        "notes": notes or None,
                    },
                )
                if created:
                    st.success(f"✅ Created {created['fullName']}")


# =============================================================================
# Tab 3: Properties
# =============================================================================


def render_properties_tab(client: CRMClient) -> None:
    st.header("🏢 Properties")

    col1, col2, col3, col4 = st.columns([3, 1, 1, 1])
    search = col1.text_input("Search by title or address", key="prop_search")
    status = col2.selectbox("Status", ["All"] + [s.value for s in PropertyStatus], key="prop_status")
    currency = col3.selectbox("Currency", ["All"] + [c.value for c in Currency], key="prop_currency")
    min_rooms = col4.number_input("Min Rooms", min_value=0, value=0, key="prop_rooms")

    result = api_call(
        client.list_properties,
        search=search or None,
        status=None if status == "All" else status,
        currency=None if currency == "All" else currency,
        minRooms=min_rooms or None,
        limit=100,
    )
    if result:
        st.caption(f"{result['total']} properties")
        df = to_frame(result["data"], ["title", "address", "price", "currency", "status", "rooms", "sizeSqm", "owner"])
        st.dataframe(df, use_container_width=True, hide_index=True)

        options = {p["title"]: p["id"] for p in result["data"]}
        if options:
            st.subheader("📷 Upload Photos")
            target = st.selectbox("Property", list(options.keys()), key="photo_target")
            uploads = st.file_uploader(
                "Photos", type=["jpg", "jpeg", "png", "gif", "webp"], accept_multiple_files=True
            )
            if uploads and st.button("Upload", key="upload_photos"):
                photos = [(f.name, f.getvalue(), f.type or "application/octet-stream") for f in uploads]
                stored = api_call(client.upload_photos, options[target], photos)
                if stored:
                    st.success(f"✅ Uploaded {len(stored)} photos")


# =============================================================================
# Tab 4: Deals Pipeline
# =============================================================================


def render_deals_tab(client: CRMClient) -> None:
    st.header("📈 Deals Pipeline")

    board = KanbanBoard(client)
    if api_call(board.refresh) is None:
        return
    st.caption(f"{board.total} total deals")

    cols = st.columns(len(STAGES))
    for col, stage in zip(cols, STAGES):
        with col:
            st.subheader(stage.replace("_", " ").title())
            for deal in board.columns[stage]:
                with st.container(border=True):
                    st.write(f"**{(deal.get('client') or {}).get('fullName', '—')}**")
                    if deal.get("property"):
                        st.caption(deal["property"]["title"])
                    if deal.get("value") is not None:
                        st.caption(f"{deal['value']:,.0f}")

    st.divider()
    st.subheader("Move Deal")
    cards = {
        f"{(d.get('client') or {}).get('fullName', d['id'])} ({stage})": d["id"]
        for stage in STAGES
        for d in board.columns[stage]
    }
    if not cards:
        st.info("No deals yet")
        return
    col1, col2 = st.columns(2)
    label = col1.selectbox("Deal", list(cards.keys()), key="move_deal")
    target = col2.selectbox("To stage", list(STAGES), key="move_stage")
    if st.button("Move", type="primary", key="move_btn"):
        if board.drop(cards[label], target):
            st.success("Deal stage updated")
            st.rerun()
        elif board.last_error is not None:
            st.error("Failed to update deal stage")
        else:
            st.info("Deal is already in that stage")


# =============================================================================
# Tab 5: Tasks
# =============================================================================


def render_tasks_tab(client: CRMClient) -> None:
    st.header("✅ Tasks")

    col1, col2, col3 = st.columns(3)
    due = col1.selectbox("Due", ["All", "today", "overdue", "upcoming"], key="task_due")
    status = col2.selectbox("Status", ["All"] + [s.value for s in TaskStatus], key="task_status")
    priority = col3.selectbox("Priority", ["All"] + [p.value for p in TaskPriority], key="task_priority")

    result = api_call(
        client.list_tasks,
        due=None if due == "All" else due,
        status=None if status == "All" else status,
        priority=None if priority == "All" else priority,
        limit=200,
    )
    if result:
        df = to_frame(result["data"], ["title", "dueAt", "priority", "status", "agent", "client", "property"])
        st.dataframe(df, use_container_width=True, hide_index=True)

    with st.expander("➕ New Task"):
        with st.form("new_task_form", clear_on_submit=True):
            title = st.text_input("Title *")
            description = st.text_area("Description")
            due_day = st.date_input("Due date")
            due_time = st.time_input("Due time", value=time(9, 0))
            task_priority = st.selectbox("Priority", [p.value for p in TaskPriority], index=1)
            if st.form_submit_button("Create", type="primary"):
                created = api_call(
                    client.create_task,
                    {
                        "title": title,
                        "description": description or None,
                        "dueAt": _due_iso(due_day, due_time),
                        "priority": task_priority,
                    },
                )
                if created:
                    st.success(f"✅ Created task {created['title']}")


# =============================================================================
# Main Application
# =============================================================================


def main() -> None:
    """Main application entry point."""
    user = st.session_state.get("user")
    if not user:
        render_login()
        return

    render_sidebar(user)
    client = get_client()

    tabs = st.tabs(["📊 Dashboard", "👥 Clients", "🏢 Properties", "📈 Deals", "✅ Tasks"])
    with tabs[0]:
        render_dashboard_tab(client)
    with tabs[1]:
        render_clients_tab(client)
    with tabs[2]:
        render_properties_tab(client)
    with tabs[3]:
        render_deals_tab(client)
    with tabs[4]:
        render_tasks_tab(client)

    client.close()


if __name__ == "__main__":
    main()
