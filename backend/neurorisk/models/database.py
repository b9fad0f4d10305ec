import os
import json
import sqlite3
from datetime import datetime
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# SQLite database path
DB_PATH = os.getenv(
    "DB_PATH",
    os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "database.db"),
)

# Columns stored as JSON text
_JSON_COLUMNS = ("user_response", "risk_factors", "recommendations", "details")


def get_db_connection():
    """Return a SQLite connection"""
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db():
    """Create tables"""
    conn = get_db_connection()
    cursor = conn.cursor()

    # profiles (id = user id)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            full_name TEXT,
            date_of_birth TEXT,
            education_level TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS assessments (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            assessment_type TEXT NOT NULL,
            language TEXT DEFAULT 'en',
            status TEXT DEFAULT 'in_progress',
            risk_level TEXT,
            total_score INTEGER,
            notes TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            completed_at TEXT
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS assessment_tasks (
            id TEXT PRIMARY KEY,
            assessment_id TEXT NOT NULL,
            task_type TEXT NOT NULL,
            task_name TEXT,
            instructions TEXT,
            max_score INTEGER DEFAULT 100,
            user_score REAL,
            response_time_ms INTEGER,
            user_response TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (assessment_id) REFERENCES assessments (id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS speech_analysis (
            id TEXT PRIMARY KEY,
            assessment_id TEXT NOT NULL,
            speech_rate REAL,
            pause_frequency REAL,
            voice_tremor_score REAL,
            articulation_clarity REAL,
            semantic_fluency_score REAL,
            phonemic_fluency_score REAL,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (assessment_id) REFERENCES assessments (id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS risk_scores (
            id TEXT PRIMARY KEY,
            assessment_id TEXT NOT NULL,
            cognitive_score INTEGER NOT NULL,
            speech_score INTEGER NOT NULL,
            memory_score INTEGER NOT NULL,
            overall_risk_score INTEGER NOT NULL,
            risk_level TEXT NOT NULL,
            risk_factors TEXT,
            recommendations TEXT,
            confidence_level REAL,
            ai_model_version TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (assessment_id) REFERENCES assessments (id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS audit_logs (
            id TEXT PRIMARY KEY,
            user_id TEXT,
            action TEXT NOT NULL,
            resource_type TEXT NOT NULL,
            resource_id TEXT,
            details TEXT,
            ip_address TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_assessments_user ON assessments (user_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_tasks_assessment ON assessment_tasks (assessment_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_speech_assessment ON speech_analysis (assessment_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_risk_assessment ON risk_scores (assessment_id)")

    conn.commit()
    conn.close()


def _row_to_dict(row) -> dict:
    """Row -> dict, decoding JSON columns"""
    result = dict(row)
    for key in _JSON_COLUMNS:
        if result.get(key) and isinstance(result[key], str):
            try:
                result[key] = json.loads(result[key])
            except (json.JSONDecodeError, TypeError):
                pass
    return result


class SimpleDB:
    """Small DB helper"""

    @staticmethod
    def generate_id():
        """UUID"""
        import uuid
        return str(uuid.uuid4())

    # ===== Profiles =====
    @staticmethod
    def get_profile(user_id: str) -> Optional[dict]:
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM profiles WHERE id = ?", (user_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    @staticmethod
    def upsert_profile(user_id: str, data: dict) -> dict:
        """Create the profile or update the given fields"""
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            now = datetime.now().isoformat()

            cursor.execute("SELECT id FROM profiles WHERE id = ?", (user_id,))
            if cursor.fetchone():
                if data:
                    set_clause = ", ".join(f"{k} = ?" for k in data.keys())
                    cursor.execute(
                        f"UPDATE profiles SET {set_clause}, updated_at = ? WHERE id = ?",
                        list(data.values()) + [now, user_id],
                    )
            else:
                cursor.execute("""
                    INSERT INTO profiles (id, full_name, date_of_birth, education_level, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (user_id, data.get('full_name'), data.get('date_of_birth'),
                      data.get('education_level'), now, now))

            conn.commit()
            cursor.execute("SELECT * FROM profiles WHERE id = ?", (user_id,))
            return dict(cursor.fetchone())
        finally:
            conn.close()

    # ===== Assessments =====
    @staticmethod
    def create_assessment(data: dict) -> dict:
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            assessment_id = SimpleDB.generate_id()
            now = datetime.now().isoformat()

            cursor.execute("""
                INSERT INTO assessments (id, user_id, assessment_type, language, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (assessment_id, data['user_id'], data['assessment_type'],
                  data.get('language', 'en'), data.get('status', 'in_progress'), now))

            conn.commit()
            cursor.execute("SELECT * FROM assessments WHERE id = ?", (assessment_id,))
            return dict(cursor.fetchone())
        finally:
            conn.close()

    @staticmethod
    def get_user_assessments(user_id: str, limit: int = 50) -> list:
        """Assessments of one user, newest first"""
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM assessments WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC LIMIT ?
            """, (user_id, limit))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    @staticmethod
    def get_assessment(assessment_id: str, user_id: Optional[str] = None) -> Optional[dict]:
        """Single assessment, optionally restricted to its owner"""
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            if user_id is None:
                cursor.execute("SELECT * FROM assessments WHERE id = ?", (assessment_id,))
            else:
                cursor.execute(
                    "SELECT * FROM assessments WHERE id = ? AND user_id = ?",
                    (assessment_id, user_id),
                )
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    @staticmethod
    def update_assessment(assessment_id: str, data: dict) -> Optional[dict]:
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            set_clause = ", ".join(f"{k} = ?" for k in data.keys())
            values = list(data.values()) + [assessment_id]
            cursor.execute(f"UPDATE assessments SET {set_clause} WHERE id = ?", values)
            conn.commit()

            cursor.execute("SELECT * FROM assessments WHERE id = ?", (assessment_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    # ===== Assessment tasks =====
    @staticmethod
    def create_task(data: dict) -> dict:
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            task_id = SimpleDB.generate_id()
            now = datetime.now().isoformat()
            user_response = data.get('user_response')

            cursor.execute("""
                INSERT INTO assessment_tasks
                (id, assessment_id, task_type, task_name, instructions, max_score,
                 user_score, response_time_ms, user_response, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (task_id, data['assessment_id'], data['task_type'], data.get('task_name'),
                  data.get('instructions'), data.get('max_score', 100), data.get('user_score'),
                  data.get('response_time_ms'),
                  json.dumps(user_response, ensure_ascii=False) if user_response is not None else None,
                  now))

            conn.commit()
            cursor.execute("SELECT * FROM assessment_tasks WHERE id = ?", (task_id,))
            return _row_to_dict(cursor.fetchone())
        finally:
            conn.close()

    @staticmethod
    def get_assessment_tasks(assessment_id: str) -> list:
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM assessment_tasks WHERE assessment_id = ?
                ORDER BY created_at, rowid
            """, (assessment_id,))
            return [_row_to_dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    # ===== Speech analysis =====
    @staticmethod
    def create_speech_analysis(data: dict) -> dict:
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            speech_id = SimpleDB.generate_id()
            now = datetime.now().isoformat()

            cursor.execute("""
                INSERT INTO speech_analysis
                (id, assessment_id, speech_rate, pause_frequency, voice_tremor_score,
                 articulation_clarity, semantic_fluency_score, phonemic_fluency_score, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (speech_id, data['assessment_id'], data.get('speech_rate'),
                  data.get('pause_frequency'), data.get('voice_tremor_score'),
                  data.get('articulation_clarity'), data.get('semantic_fluency_score'),
                  data.get('phonemic_fluency_score'), now))

            conn.commit()
            cursor.execute("SELECT * FROM speech_analysis WHERE id = ?", (speech_id,))
            return dict(cursor.fetchone())
        finally:
            conn.close()

    @staticmethod
    def get_speech_analysis(assessment_id: str) -> list:
        """Speech entries of an assessment, newest first"""
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM speech_analysis WHERE assessment_id = ?
                ORDER BY created_at DESC, rowid DESC
            """, (assessment_id,))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    # ===== Risk scores =====
    @staticmethod
    def save_risk_result(data: dict) -> dict:
        """Store a risk score and stamp the assessment's risk_level / total_score

        Both writes share one transaction; on error neither is kept.
        """
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            score_id = SimpleDB.generate_id()
            now = datetime.now().isoformat()

            with conn:
                cursor.execute("""
                    INSERT INTO risk_scores
                    (id, assessment_id, cognitive_score, speech_score, memory_score,
                     overall_risk_score, risk_level, risk_factors, recommendations,
                     confidence_level, ai_model_version, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (score_id, data['assessment_id'], data['cognitive_score'], data['speech_score'],
                      data['memory_score'], data['overall_risk_score'], data['risk_level'],
                      json.dumps(data.get('risk_factors', []), ensure_ascii=False),
                      json.dumps(data.get('recommendations', []), ensure_ascii=False),
                      data.get('confidence_level'), data.get('ai_model_version'), now))
                cursor.execute(
                    "UPDATE assessments SET risk_level = ?, total_score = ? WHERE id = ?",
                    (data['risk_level'], data['cognitive_score'], data['assessment_id']),
                )

            cursor.execute("SELECT * FROM risk_scores WHERE id = ?", (score_id,))
            return _row_to_dict(cursor.fetchone())
        finally:
            conn.close()

    @staticmethod
    def get_risk_scores(assessment_id: str) -> list:
        """Risk scores of an assessment, newest first"""
        conn = get_db_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM risk_scores WHERE assessment_id = ?
                ORDER BY created_at DESC, rowid DESC
            """, (assessment_id,))
            return [_row_to_dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    @staticmethod
    def get_latest_risk_score(assessment_id: str) -> Optional[dict]:
        scores = SimpleDB.get_risk_scores(assessment_id)
        return scores[0] if scores else None


db = SimpleDB()
