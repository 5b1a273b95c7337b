from __future__ import annotations

STATE_DIR_NAME = ".unigestor"
CONFIG_FILE = "config.yaml"
TASKS_FILE = "tasks.yaml"
TASKS_LOCK_FILE = "tasks.lock"
EVENTS_FILE = "task_events.jsonl"
WINDOWS_LOCK_BYTES = 4096

GENERAL_TAB = "General"

DEFAULT_APP_NAME = "UniGestor AI"
DEFAULT_TIME_ZONE = "America/Mexico_City"
DEFAULT_UPCOMING_DAYS = 7
DEFAULT_RESOURCE_CATEGORY = "Otros"

DEFAULT_DEPARTMENTS = (
    "Dirección",
    "Control Escolar",
    "Publicidad",
    "Finanzas",
    "Vinculación",
    "Académico",
    "Recursos Humanos y Materiales",
    "Tutoría y Bienestar",
)

DEFAULT_RESOURCE_CATEGORIES = (
    ("c1", "Formatos Oficiales"),
    ("c2", "Normatividad"),
    ("c3", "Evidencias"),
)

DEFAULT_MODEL = "gemini-3-pro-preview"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")
MODEL_ENV_VAR = "UNIGESTOR_MODEL"
