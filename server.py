from spendsense.app.main import create_app

app = create_app()


if __name__ == "__main__":
    port = app.extensions["spendsense"]["settings"].port
    app.run(host="0.0.0.0", port=port, debug=False)
