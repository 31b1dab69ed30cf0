from flask_sqlalchemy import SQLAlchemy

# Records handed back to callers stay readable after the transaction commits
db = SQLAlchemy(session_options={"expire_on_commit": False})
