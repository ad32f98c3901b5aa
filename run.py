from analfabet import create_app, db
from analfabet.models import Bet, League, LeagueMember, Match, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Match": Match,
        "Bet": Bet,
        "League": League,
        "LeagueMember": LeagueMember,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
