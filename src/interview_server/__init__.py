"""interview_server — FastAPI REST server for the adaptive interview SDK."""
