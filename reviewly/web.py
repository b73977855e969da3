"""FastAPI web app serving the per-business feedback page."""

import html
import json
import uuid
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from .config import Settings, configure_logging
from .flow import FlowError, FlowServices, FlowSession, InputError

load_dotenv()

MAX_SESSIONS = 1000


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(Settings.from_env().log_level)
    yield


app = FastAPI(title="Reviewly", lifespan=lifespan)


class SessionRegistry:
    """In-memory FlowSessions by id; the oldest is dropped past `limit`."""

    def __init__(self, limit: int = MAX_SESSIONS):
        self.limit = limit
        self._sessions: dict[str, FlowSession] = {}

    def add(self, session: FlowSession) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = session
        while len(self._sessions) > self.limit:
            self._sessions.pop(next(iter(self._sessions)))
        return session_id

    def get(self, session_id: str) -> FlowSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found.")
        return session

    def __len__(self):
        return len(self._sessions)


class SlugRequest(BaseModel):
    slug: str


class StepRequest(BaseModel):
    step: str


class KeywordRequest(BaseModel):
    keyword: str


class ContactRequest(BaseModel):
    email: str
    message: str


def _services(request: Request) -> FlowServices:
    state = request.app.state
    if getattr(state, "services", None) is None:
        state.services = FlowServices.from_settings(Settings.from_env())
    return state.services


def _registry(request: Request) -> SessionRegistry:
    state = request.app.state
    if getattr(state, "sessions", None) is None:
        state.sessions = SessionRegistry()
    return state.sessions


async def _open_session(request: Request, slug: str) -> tuple[str, FlowSession]:
    session = FlowSession(slug, _services(request))
    await session.load()
    if not session.found:
        return "", session
    return _registry(request).add(session), session


def _state(session_id: str, session: FlowSession) -> dict:
    return {"session_id": session_id, **session.to_dict()}


@app.exception_handler(FlowError)
async def flow_error_handler(request: Request, exc: FlowError):
    status = 422 if isinstance(exc, InputError) else 409
    return JSONResponse({"detail": str(exc)}, status_code=status)


@app.get("/", response_class=HTMLResponse)
async def index():
    return INDEX_HTML


@app.post("/api/sessions")
async def create_session(body: SlugRequest, request: Request):
    session_id, session = await _open_session(request, body.slug)
    if not session.found:
        raise HTTPException(status_code=404, detail="Business not found.")
    return _state(session_id, session)


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str, request: Request):
    return _state(session_id, _registry(request).get(session_id))


@app.post("/api/sessions/{session_id}/step")
async def change_step(session_id: str, body: StepRequest, request: Request):
    session = _registry(request).get(session_id)
    await session.go_to(body.step)
    return _state(session_id, session)


@app.post("/api/sessions/{session_id}/back")
async def go_back(session_id: str, request: Request):
    session = _registry(request).get(session_id)
    await session.back()
    return _state(session_id, session)


@app.post("/api/sessions/{session_id}/keywords")
async def toggle_keyword(session_id: str, body: KeywordRequest, request: Request):
    session = _registry(request).get(session_id)
    session.toggle_keyword(body.keyword)
    return _state(session_id, session)


@app.post("/api/sessions/{session_id}/regenerate")
async def regenerate(session_id: str, request: Request):
    session = _registry(request).get(session_id)
    await session.regenerate()
    return _state(session_id, session)


@app.post("/api/sessions/{session_id}/copy")
async def copy_review(session_id: str, request: Request):
    """Hand the draft and review link to the browser, which does the copy and redirect."""
    text, url = _registry(request).get(session_id).review_handoff()
    return {"text": text, "url": url}


@app.post("/api/sessions/{session_id}/contact")
async def submit_contact(session_id: str, body: ContactRequest, request: Request):
    session = _registry(request).get(session_id)
    await session.submit_feedback(body.email, body.message)
    return _state(session_id, session)


@app.get("/{slug}", response_class=HTMLResponse)
async def business_page(slug: str, request: Request):
    # Slugs never contain dots; keeps /favicon.ico and friends off the store
    if "." in slug:
        return HTMLResponse(NOT_FOUND_HTML, status_code=404)

    session_id, session = await _open_session(request, slug)
    if not session.found:
        return HTMLResponse(NOT_FOUND_HTML, status_code=404)

    business = session.business
    page = (
        FLOW_HTML
        .replace("__TITLE__", html.escape(f"Share Your Experience - {business.business_name} | Reviewly"))
        .replace("__THEME__", html.escape(business.theme_colour or "#1a1a2e"))
        .replace("__STATE__", json.dumps(_state(session_id, session)).replace("</", "<\\/"))
    )
    return page


# ---------------------------------------------------------------------------
# Inline HTML
# ---------------------------------------------------------------------------

_BASE_STYLE = """\
  *, *::before, *::after { margin: 0; padding: 0; box-sizing: border-box; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
    background: #f0f2f5;
    color: #1a1a2e;
    min-height: 100vh;
    display: flex;
    flex-direction: column;
    align-items: center;
    justify-content: center;
    padding: 20px;
  }

  .card {
    background: white;
    border-radius: 16px;
    box-shadow: 0 1px 3px rgba(0,0,0,0.08), 0 8px 24px rgba(0,0,0,0.06);
    padding: 40px;
    width: 100%;
    max-width: 460px;
    text-align: center;
  }

  h1 { font-size: 24px; font-weight: 700; margin-bottom: 8px; }
  h2 { font-size: 28px; font-weight: 700; margin-bottom: 24px; }
  p { font-size: 14px; color: #6b7280; line-height: 1.5; }

  .footer { margin-top: 24px; font-size: 12px; color: #9ca3af; }
"""

INDEX_HTML = f"""\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Reviewly</title>
<style>
{_BASE_STYLE}
  a.btn {{
    display: inline-block;
    margin-top: 24px;
    padding: 12px 32px;
    background: #2563eb;
    color: white;
    border-radius: 10px;
    font-weight: 600;
    text-decoration: none;
  }}
</style>
</head>
<body>
<div class="card">
  <h1>Reviewly</h1>
  <p>AI-powered review collection platform for businesses.</p>
  <a class="btn" href="/sushi-grill">Try Demo</a>
  <p style="margin-top: 20px">Each business gets their own URL: reviewly.store/business-name</p>
</div>
</body>
</html>
"""

NOT_FOUND_HTML = f"""\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Business Not Found | Reviewly</title>
<style>
{_BASE_STYLE}
</style>
</head>
<body>
<div class="card">
  <h1>Business Not Found</h1>
  <p>The business you're looking for doesn't exist.</p>
</div>
</body>
</html>
"""

FLOW_HTML = (
    """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>__TITLE__</title>
<style>
"""
    + _BASE_STYLE
    + """
  body { background: linear-gradient(to bottom right, __THEME__33, __THEME__1a); }

  .progress { display: flex; gap: 8px; justify-content: center; margin-bottom: 20px; }
  .progress .dot { width: 12px; height: 12px; border-radius: 50%; background: #d1d5db; }
  .progress .dot.active { background: #1f2937; }

  button {
    width: 100%;
    padding: 16px;
    margin-top: 12px;
    background: __THEME__;
    color: white;
    border: none;
    border-radius: 12px;
    font-size: 16px;
    font-weight: 600;
    cursor: pointer;
  }
  button:disabled { background: #9ca3af; cursor: not-allowed; }
  button.good { background: #22c55e; }
  button.outline { background: white; color: __THEME__; border: 2px solid __THEME__; }
  button.bad { background: white; color: #dc2626; border: 2px solid #fecaca; }
  button.ghost { background: none; color: #4b5563; width: auto; }

  .keyword { display: flex; align-items: center; gap: 10px; padding: 10px 0; text-align: left; font-size: 15px; }
  .review { text-align: left; white-space: pre-wrap; font-size: 15px; background: #f9fafb; border-radius: 10px; padding: 16px; margin-bottom: 8px; }

  input, textarea {
    width: 100%;
    margin-top: 12px;
    padding: 12px 16px;
    border: 1px solid #d1d5db;
    border-radius: 10px;
    font-size: 15px;
    font-family: inherit;
  }
  textarea { min-height: 120px; }

  .notice { margin-top: 16px; padding: 12px 16px; background: #ecfdf5; border-radius: 10px; color: #065f46; font-size: 14px; }
</style>
</head>
<body>
<div class="progress" id="progress"></div>
<div class="card" id="card"></div>
<div id="back"></div>
<div class="footer">Powered by Reviewly</div>

<script>
let state = __STATE__;

const card = document.getElementById('card');

function esc(s) {
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

async function call(path, body) {
  const resp = await fetch('/api/sessions/' + state.session_id + path, {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify(body || {}),
  });
  const data = await resp.json();
  if (!resp.ok) {
    alert(data.detail || 'Something went wrong.');
    return null;
  }
  return data;
}

async function act(path, body) {
  const data = await call(path, body);
  if (data) {
    state = data;
    render();
    if (state.notice) alert(state.notice);
  }
}

async function copyReview() {
  const data = await call('/copy');
  if (!data) return;
  try {
    await navigator.clipboard.writeText(data.text);
  } catch (err) {
    alert("We couldn't copy your review automatically. Please copy it and paste it on Google Reviews.");
  }
  window.open(data.url, '_blank');
}

function render() {
  const b = state.business;

  let dots = '';
  for (let i = 0; i < 3; i++) {
    dots += '<span class="dot' + (state.progress_index === i ? ' active' : '') + '"></span>';
  }
  document.getElementById('progress').innerHTML = dots;

  let body = '';
  if (state.step === 'experience') {
    body = '<h1>Tell us about your experience at</h1><h2>' + esc(b.business_name) + '</h2>' +
      '<button class="good" onclick="act(\\'/step\\', {step: \\'keywords\\'})">I had a great time! &#11088;</button>' +
      '<button class="bad" onclick="act(\\'/step\\', {step: \\'feedback\\'})">I did NOT have a great time &#128542;</button>';
  } else if (state.step === 'keywords') {
    body = '<h1>What did you enjoy most?</h1>';
    state.keywords.forEach((k) => {
      const checked = state.selected_keywords.includes(k.keyword) ? ' checked' : '';
      body += '<label class="keyword"><input type="checkbox" style="width:auto;margin:0"' + checked +
        ' data-keyword="' + esc(k.keyword) + '"> ' + esc(k.keyword) + '</label>';
    });
    body += '<button id="next"' + (state.can_advance ? '' : ' disabled') +
      ' onclick="act(\\'/step\\', {step: \\'review\\'})">Continue</button>';
  } else if (state.step === 'review') {
    body = '<h1>Your review</h1>';
    if (state.is_generating || !state.generated_review) {
      body += '<p>Writing your review...</p>';
    } else {
      body += '<div class="review">' + esc(state.generated_review) + '</div>' +
        '<button onclick="copyReview()">Copy &amp; post on Google</button>' +
        '<button class="outline" onclick="regenerate(this)">Regenerate Review</button>';
    }
  } else if (state.step === 'feedback') {
    body = '<h1>How would you like to share your feedback?</h1>' +
      '<p>We sincerely apologize that your experience didn\\'t meet expectations. ' +
      'Your feedback is valuable to us, and we\\'d like to make things right.</p>' +
      '<button onclick="act(\\'/step\\', {step: \\'contact\\'})">Reach out to manager</button>' +
      '<button class="outline" onclick="window.open(state.business.google_reviews_link, \\'_blank\\')">Leave a Google review</button>';
  } else if (state.step === 'contact') {
    body = '<h1>Contact the manager</h1>' +
      '<input type="email" id="email" placeholder="Your email">' +
      '<textarea id="message" placeholder="Tell us what happened"></textarea>' +
      '<button id="send" disabled onclick="submitContact(this)">Send</button>';
  }
  card.innerHTML = body;

  document.querySelectorAll('input[data-keyword]').forEach((el) => {
    el.addEventListener('change', () => act('/keywords', {keyword: el.dataset.keyword}));
  });
  if (state.step === 'contact') {
    const check = () => {
      document.getElementById('send').disabled =
        !document.getElementById('email').value.trim() || !document.getElementById('message').value.trim();
    };
    document.getElementById('email').addEventListener('input', check);
    document.getElementById('message').addEventListener('input', check);
  }

  document.getElementById('back').innerHTML = state.step === 'experience' ? '' :
    '<button class="ghost" onclick="act(\\'/back\\')">&larr; Back</button>';
}

async function regenerate(btn) {
  btn.disabled = true;
  btn.textContent = 'Regenerating...';
  await act('/regenerate');
}

async function submitContact(btn) {
  btn.disabled = true;
  btn.textContent = 'Sending...';
  await act('/contact', {
    email: document.getElementById('email').value,
    message: document.getElementById('message').value,
  });
}

render();
</script>
</body>
</html>
"""
)
