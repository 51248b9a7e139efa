import os
import logging
import secrets
from typing import Dict, Optional
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database

import database
from aggregation import build_dashboard, merge_recent_updates
from errors import SipenaError
from export import export_filename, export_teachers_csv
from repositories import HeadmasterNoteRepository, SupervisionRepository, TeacherRepository
from schemas import (
    Dashboard,
    HeadmasterNote as HeadmasterNoteSchema,
    LoginRequest,
    LoginResponse,
    Supervision as SupervisionSchema,
    SupervisionKind,
    Teacher as TeacherSchema,
    Unit,
)
from session import MemorySessionStore, Session

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SiPeNa API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Logged-in sessions by bearer token, at most one per role
SESSIONS: Dict[str, Session] = {}


@app.exception_handler(SipenaError)
def sipena_error_handler(request: Request, exc: SipenaError):
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


def get_db() -> Database:
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return database.db


def get_session(authorization: Optional[str] = Header(None)) -> Session:
    token = (authorization or "").removeprefix("Bearer ").strip()
    session = SESSIONS.get(token)
    if session is None or not session.is_authenticated:
        raise HTTPException(status_code=401, detail="Not logged in")
    return session


def require_admin(session: Session = Depends(get_session)) -> Session:
    if not session.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return session


def teachers_repo(db: Database = Depends(get_db)) -> TeacherRepository:
    return TeacherRepository(db)


def notes_repo(db: Database = Depends(get_db)) -> HeadmasterNoteRepository:
    return HeadmasterNoteRepository(db)


def supervision_repos(db: Database = Depends(get_db)) -> Dict[SupervisionKind, SupervisionRepository]:
    teachers = TeacherRepository(db)
    return {kind: SupervisionRepository(db, kind, teachers) for kind in SupervisionKind}


@app.get("/")
def read_root():
    return {"message": "SiPeNa API ready"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "collections": [],
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected & Working"
            response["database_name"] = getattr(database.db, "name", "unknown")
            try:
                response["collections"] = database.db.list_collection_names()[:10]
            except Exception as e:
                response["database"] = f"⚠️ Connected but error listing collections: {str(e)[:80]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:120]}"
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response


# Login
def _open_session(session: Session) -> LoginResponse:
    for token, existing in SESSIONS.items():
        if existing.role == session.role:
            return LoginResponse(token=token, role=existing.role.value)
    token = secrets.token_urlsafe(24)
    SESSIONS[token] = session
    return LoginResponse(token=token, role=session.role.value)


@app.post("/login", response_model=LoginResponse)
def login(req: LoginRequest):
    session = Session(MemorySessionStore())
    if not session.login(req.username, req.password):
        raise HTTPException(status_code=401, detail="Username atau password salah")
    return _open_session(session)


@app.post("/login/guest", response_model=LoginResponse)
def login_guest():
    session = Session(MemorySessionStore())
    session.login_as_guest()
    return _open_session(session)


@app.post("/logout")
def logout(authorization: Optional[str] = Header(None), session: Session = Depends(get_session)):
    session.logout()
    SESSIONS.pop((authorization or "").removeprefix("Bearer ").strip(), None)
    return {"loggedOut": True}


@app.get("/session")
def current_session(session: Session = Depends(get_session)):
    return session.state


# Teachers
@app.get("/teachers")
def list_teachers(unit: Optional[Unit] = None, repo: TeacherRepository = Depends(teachers_repo),
                  _: Session = Depends(get_session)):
    teachers = repo.list_active()
    if unit:
        teachers = [t for t in teachers if t.unit == unit]
    return teachers


@app.get("/teachers/archived")
def list_archived_teachers(repo: TeacherRepository = Depends(teachers_repo), _: Session = Depends(get_session)):
    return repo.list_archived()


@app.post("/teachers")
def create_teacher(payload: TeacherSchema, repo: TeacherRepository = Depends(teachers_repo),
                   _: Session = Depends(require_admin)):
    payload.id = None
    return {"id": repo.save(payload)}


@app.put("/teachers/{teacher_id}")
def update_teacher(teacher_id: str, payload: TeacherSchema, repo: TeacherRepository = Depends(teachers_repo),
                   _: Session = Depends(require_admin)):
    payload.id = teacher_id
    repo.save(payload)
    return {"updated": True}


@app.delete("/teachers/{teacher_id}")
def delete_teacher(teacher_id: str, repo: TeacherRepository = Depends(teachers_repo),
                   _: Session = Depends(require_admin)):
    repo.remove(teacher_id)
    return {"deleted": True}


@app.post("/teachers/{teacher_id}/archive")
def archive_teacher(teacher_id: str, repo: TeacherRepository = Depends(teachers_repo),
                    _: Session = Depends(require_admin)):
    repo.archive(teacher_id)
    return {"archived": True}


@app.post("/teachers/{teacher_id}/unarchive")
def unarchive_teacher(teacher_id: str, repo: TeacherRepository = Depends(teachers_repo),
                      _: Session = Depends(require_admin)):
    repo.unarchive(teacher_id)
    return {"archived": False}


# Supervisions
@app.get("/supervisions/{kind}")
def list_supervisions(kind: SupervisionKind, unit: Optional[Unit] = None, repos=Depends(supervision_repos),
                      _: Session = Depends(get_session)):
    return repos[kind].list(unit)


@app.post("/supervisions/{kind}")
def create_supervision(kind: SupervisionKind, payload: SupervisionSchema, repos=Depends(supervision_repos),
                       _: Session = Depends(require_admin)):
    payload.id = None
    repos[kind].save(payload)
    return {"id": payload.id, "grade": payload.grade, "unit": payload.unit}


@app.put("/supervisions/{kind}/{supervision_id}")
def update_supervision(kind: SupervisionKind, supervision_id: str, payload: SupervisionSchema,
                       repos=Depends(supervision_repos), _: Session = Depends(require_admin)):
    payload.id = supervision_id
    repos[kind].save(payload)
    return {"updated": True, "grade": payload.grade}


@app.delete("/supervisions/{kind}/{supervision_id}")
def delete_supervision(kind: SupervisionKind, supervision_id: str, repos=Depends(supervision_repos),
                       _: Session = Depends(require_admin)):
    repos[kind].remove(supervision_id)
    return {"deleted": True}


# Headmaster notes
@app.get("/notes")
def list_notes(repo: HeadmasterNoteRepository = Depends(notes_repo), _: Session = Depends(get_session)):
    return repo.list()


@app.get("/notes/categories")
def note_categories(_: Session = Depends(get_session)):
    return HeadmasterNoteRepository.categories()


@app.post("/notes")
def create_note(payload: HeadmasterNoteSchema, repo: HeadmasterNoteRepository = Depends(notes_repo),
                _: Session = Depends(require_admin)):
    payload.id = None
    return {"id": repo.save(payload)}


@app.put("/notes/{note_id}")
def update_note(note_id: str, payload: HeadmasterNoteSchema, repo: HeadmasterNoteRepository = Depends(notes_repo),
                _: Session = Depends(require_admin)):
    payload.id = note_id
    repo.save(payload)
    return {"updated": True}


@app.delete("/notes/{note_id}")
def delete_note(note_id: str, repo: HeadmasterNoteRepository = Depends(notes_repo),
                _: Session = Depends(require_admin)):
    repo.remove(note_id)
    return {"deleted": True}


# Dashboard
@app.get("/dashboard", response_model=Dashboard)
def dashboard(unit: Optional[Unit] = None, teachers: TeacherRepository = Depends(teachers_repo),
              repos=Depends(supervision_repos), _: Session = Depends(get_session)):
    return build_dashboard(
        teachers.list_active(),
        repos[SupervisionKind.admin].list(unit),
        repos[SupervisionKind.kbm].list(unit),
        repos[SupervisionKind.classic].list(unit),
        unit_filter=unit,
    )


@app.get("/recent-updates")
def recent_updates(teachers: TeacherRepository = Depends(teachers_repo), repos=Depends(supervision_repos),
                   notes: HeadmasterNoteRepository = Depends(notes_repo), _: Session = Depends(get_session)):
    return merge_recent_updates(
        repos[SupervisionKind.admin].list(),
        repos[SupervisionKind.kbm].list(),
        repos[SupervisionKind.classic].list(),
        notes.list(),
        teachers.list_active() + teachers.list_archived(),
    )


# Export
@app.get("/export/teachers.csv")
def export_teachers(unit: Optional[Unit] = None, teachers: TeacherRepository = Depends(teachers_repo),
                    repos=Depends(supervision_repos), _: Session = Depends(get_session)):
    roster = teachers.list_active()
    if unit:
        roster = [t for t in roster if t.unit == unit]
    content = export_teachers_csv(
        roster,
        repos[SupervisionKind.admin].list(),
        repos[SupervisionKind.kbm].list(),
        repos[SupervisionKind.classic].list(),
    )
    return Response(content=content.encode("utf-8"), media_type="text/csv", headers={
        "Content-Disposition": f"attachment; filename={export_filename()}"
    })


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
