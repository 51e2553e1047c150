from crewline_api.cli import app

if __name__ == "__main__":
    app()
