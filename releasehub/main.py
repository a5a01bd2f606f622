from releasehub.factory import build_app


app = build_app()
