"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

or, to create the database schema and the first administrator:

    flask --app run.py db init
    flask --app run.py db migrate -m "initial schema"
    flask --app run.py db upgrade
    flask --app run.py create-admin you@example.com --password secret --super

"""

from bokhald import create_app

# WSGI application object for Flask to run. When you run `flask run`, Flask looks for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # For direct `python run.py` usage (dev only) - use `flask run` or a WSGI server instead.
    app.run(debug=True)
