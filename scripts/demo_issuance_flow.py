"""Demo: issue, re-issue, download and verify a credential with TestClient.

Uses the in-memory backends (leave DATABASE_URL unset).

Run with:
    APP_ENV=dev python scripts/demo_issuance_flow.py
"""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from app.api import dependencies
from app.main import app
from app.models.user import User
from app.repos.course_repo import SAMPLE_COURSE_ID, sample_course
from app.services import token_service

USER_ID = "demo-learner"
OUT_DIR = Path("demo-output")


def main() -> None:
    client = TestClient(app)

    # ── Seed data ───────────────────────────────────────────────────
    course = sample_course()
    dependencies.course_repo.put(course)
    if dependencies.user_repo.get(USER_ID) is None:
        dependencies.user_repo.add(
            User(id=USER_ID, email="ada@example.com", name="Ada Lovelace")
        )
    headers = {
        "Authorization": f"Bearer {token_service.create_access_token(sub=USER_ID)}"
    }
    lessons = sorted(course.lesson_ids())

    # ── Step 1: 12/15 lessons done → not eligible ───────────────────
    dependencies.progress_repo.mark_completed(USER_ID, SAMPLE_COURSE_ID, *lessons[:12])
    r = client.post(
        "/v1/credentials", json={"course_id": SAMPLE_COURSE_ID}, headers=headers
    )
    print(f"1. POST /v1/credentials (12/15) → {r.status_code}  {r.json()['detail']}")

    # ── Step 2: all lessons done → issued ───────────────────────────
    dependencies.progress_repo.mark_completed(USER_ID, SAMPLE_COURSE_ID, *lessons)
    r = client.post(
        "/v1/credentials", json={"course_id": SAMPLE_COURSE_ID}, headers=headers
    )
    issued = r.json()
    code = issued["verification_code"]
    print(f"2. POST /v1/credentials (15/15) → {r.status_code}  code={code}")

    # ── Step 3: repeat → same credential ────────────────────────────
    r = client.post(
        "/v1/credentials", json={"course_id": SAMPLE_COURSE_ID}, headers=headers
    )
    same = r.json()["verification_code"] == code
    print(f"3. POST /v1/credentials (again) → {r.status_code}  same code={same}")

    # ── Step 4: download the PDF ────────────────────────────────────
    r = client.get(f"/v1/credentials/{issued['id']}/document", headers=headers)
    OUT_DIR.mkdir(exist_ok=True)
    pdf_path = OUT_DIR / f"certificate-{code}.pdf"
    pdf_path.write_bytes(r.content)
    print(f"4. GET  .../document            → {r.status_code}  wrote {pdf_path}")

    # ── Step 5: public verification ─────────────────────────────────
    r = client.get(f"/v1/verify/{code}")
    body = r.json()
    print(
        f"5. GET  /v1/verify/<code>       → {r.status_code}  valid={body['valid']}"
        f"  course={body['credential']['course_title']!r}"
    )

    r = client.get("/v1/verify/not-a-real-code")
    valid = r.json()["valid"]
    print(f"6. GET  /v1/verify/<bogus>      → {r.status_code}  valid={valid}")


if __name__ == "__main__":
    main()
