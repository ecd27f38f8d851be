import os
from classwall import create_app, socketio

app = create_app()

if __name__ == '__main__':
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() in ('true', '1')
    port = int(os.environ.get('PORT', 8080))
    try:
        socketio.run(app, host='0.0.0.0', port=port, debug=debug)
    finally:
        app.extensions['classwall'].shutdown()
