from __future__ import annotations

import uvicorn

from rfq_builder.api import create_app
from rfq_builder.config import Settings, load_dotenv
from rfq_builder.logger import configure_logging

load_dotenv()
settings = Settings.from_env()
configure_logging(settings.log_level)
app = create_app(settings)


def main(host: str = "0.0.0.0", port: int = 8000) -> None:
    uvicorn.run("rfq_builder.server:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
