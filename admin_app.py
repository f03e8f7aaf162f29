import streamlit as st

st.set_page_config(page_title="SportyGo Admin", layout="wide")

import asyncio
import threading
from datetime import timedelta

import pandas as pd
import streamlit_authenticator as stauth
from streamlit.runtime.scriptrunner import add_script_run_ctx

from sportygo.config import settings
from sportygo.database import init_db
from sportygo.logging_config import setup_logging
from sportygo.models import InviteStatus, utcnow
from sportygo.services import EventCoordinator, InviteLedger

setup_logging()


@st.cache_resource(show_spinner=False)
def get_async_loop():
    loop = asyncio.new_event_loop()
    t = threading.Thread(target=loop.run_forever, daemon=True)
    add_script_run_ctx(t)
    t.start()
    return loop


def run_async(coro):
    """Run a coroutine on the background loop and wait for its result."""
    loop = get_async_loop()
    return asyncio.run_coroutine_threadsafe(coro, loop).result()


@st.cache_resource(show_spinner=False)
def get_store():
    return run_async(init_db())


STATUS_BADGES = {
    InviteStatus.VALID: "🟢 valid",
    InviteStatus.EXPIRED: "🔴 expired",
    InviteStatus.EXHAUSTED: "🔵 exhausted",
}


def invites_frame(ledger: InviteLedger, group_id: str) -> pd.DataFrame:
    invites = run_async(ledger.list_invites(group_id))
    now = utcnow()
    rows = []
    for invite in invites:
        status = invite.status(now)
        rows.append(
            {
                "code": invite.code,
                "status": STATUS_BADGES[status],
                "used": invite.used,
                "max_uses": invite.max_uses if invite.max_uses is not None else "unlimited",
                "valid_until": invite.valid_until,
                "link": ledger.invite_link(invite.code),
            }
        )
    df = pd.DataFrame(rows)
    if not df.empty:
        df["valid_until"] = (
            pd.to_datetime(df["valid_until"], errors="coerce", utc=True)
            .dt.strftime("%Y-%m-%d %H:%M:%S")
            .fillna("")
        )
    return df


# ---------- 1. authentication ----------
if not settings.admin_password_hash or not settings.cookie_key:
    st.error("SPORTYGO_ADMIN_PASSWORD_HASH and SPORTYGO_COOKIE_KEY must be set")
    st.stop()

authenticator = stauth.Authenticate(
    {
        "usernames": {
            "admin": {
                "email": "admin@sportygo.app",
                "name": "Administrator",
                "password": settings.admin_password_hash,
            }
        }
    },
    settings.cookie_name,
    settings.cookie_key,
    30,
)

authenticator.login(location="main")
auth_status = st.session_state.get("authentication_status")

if auth_status is False:
    st.error("Wrong username or password")
    st.stop()
elif auth_status is None:
    st.warning("Please enter your username and password")
    st.stop()

# ---------- 2. main page ----------
st.sidebar.title(f"Welcome, {st.session_state.get('name')}!")
authenticator.logout("Log out", "sidebar")

try:
    store = get_store()
except Exception as e:
    st.error(f"Database initialisation failed: {e}")
    st.stop()

invites = InviteLedger(store)
events = EventCoordinator(store)

st.header("✨ Group invites")
group_id = st.text_input("Group ID")

if group_id:
    with st.form("create_invite"):
        days = st.number_input("Valid for (days)", min_value=1, max_value=365, value=7)
        max_uses = st.number_input("Max uses (0 = unlimited)", min_value=0, value=10)
        if st.form_submit_button("Generate invite", type="primary"):
            invite = run_async(
                invites.create_invite(
                    group_id,
                    utcnow() + timedelta(days=int(days)),
                    max_uses=int(max_uses) or None,
                    created_by="admin",
                )
            )
            st.success(f"Created invite {invite.code}: {invites.invite_link(invite.code)}")

    df = invites_frame(invites, group_id)
    if df.empty:
        st.info("No invites for this group", icon="📝")
    else:
        st.dataframe(df, use_container_width=True)
        code = st.selectbox("Invite", df["code"].tolist())
        if st.button("Expire invite", type="secondary"):
            if run_async(invites.expire_invite(code)):
                st.success(f"Invite {code} expired")
            else:
                st.error(f"Invite {code} not found")
            st.rerun()

# ---------- 3. vote totals ----------
st.header("🗳️ Event votes")
event_id = st.text_input("Event ID")

if event_id:
    event = run_async(events.get_event(event_id))
    if event is None:
        st.error(f"Event {event_id} not found")
    else:
        totals = run_async(events.get_vote_totals(event_id))
        cols = st.columns(4)
        cols[0].metric("Going", totals.going)
        cols[1].metric("Maybe", totals.maybe)
        cols[2].metric("Not going", totals.not_)
        cols[3].metric("Status", events.window.countdown(event))
        if not event.started_early and st.button("Start event early"):
            run_async(events.start_early(event_id))
            st.rerun()

        if events.window.has_started(event):
            st.subheader("Attendance")
            sheet = run_async(events.get_attendance(event_id))
            if not sheet:
                st.info("Members who voted going or maybe will appear here", icon="📝")
            else:
                st.dataframe(
                    pd.DataFrame(
                        [
                            {
                                "user": r.user_id,
                                "voted": r.voted_status.value if r.voted_status else "",
                                "arrived": r.arrived,
                                "arrival_time": r.arrival_time,
                            }
                            for r in sheet
                        ]
                    ),
                    use_container_width=True,
                )
                member = st.selectbox("Member", [r.user_id for r in sheet])
                current = next(r for r in sheet if r.user_id == member)
                label = "Mark absent" if current.arrived else "Mark arrived"
                if st.button(label):
                    run_async(events.record_attendance(event_id, member, not current.arrived))
                    st.rerun()
