from predictor import create_app, db
from predictor.models import Gameweek, League, Match, Prediction, ScoreOverride, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "League": League,
        "Match": Match,
        "Prediction": Prediction,
        "Gameweek": Gameweek,
        "ScoreOverride": ScoreOverride,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
