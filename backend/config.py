import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///rzzrzz-poker.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    APP_ENV = os.environ.get('APP_ENV', 'development')
    PORT = int(os.environ.get('PORT', '3000'))
    # Comma separated browser origins allowed for HTTP and Socket.IO
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Admin panel credentials. Default password: 'rzzrzz123'
    ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD_HASH = os.environ.get(
        'ADMIN_PASSWORD_HASH',
        '$2a$10$gUouoZeaklF2hpxJ5cvGbuKCy2s4eygyAZ2nmja4lE7s5GmRQMkmi',
    )
    # Run audit log writes inline instead of on a background task
    AUDIT_LOG_SYNC = os.environ.get('AUDIT_LOG_SYNC', '0') == '1'
    ROOM_ID_LENGTH = int(os.environ.get('ROOM_ID_LENGTH', '8'))
    # Create missing tables (the audit log) when the app starts
    AUTO_CREATE_TABLES = os.environ.get('AUTO_CREATE_TABLES', '1') == '1'
