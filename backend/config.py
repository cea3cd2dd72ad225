import os


def _split_origins(value):
    return [o.strip() for o in value.split(',') if o.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///scorecard.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Session store backend: 'sql' (app database) or 'memory' (process-local, lost on restart)
    SESSION_STORE = os.environ.get('SESSION_STORE', 'sql')
    # Length of the shareable session code
    SESSION_ID_LENGTH = int(os.environ.get('SESSION_ID_LENGTH', '7'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Front-end dev servers allowed to call the API and open sockets
    CORS_ORIGINS = _split_origins(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
    ))
