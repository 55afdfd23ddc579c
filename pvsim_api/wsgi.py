import uvicorn

from pvsim_api.main import create_app

app = create_app()

if __name__ == "__main__":
    uvicorn.run("pvsim_api.wsgi:app", host="0.0.0.0", port=3000, reload=True)
