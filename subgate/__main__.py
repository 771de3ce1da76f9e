from __future__ import annotations

import uvicorn

from subgate.core.settings import S


def main() -> None:
    uvicorn.run("subgate.main:app", host="0.0.0.0", port=S.port)


if __name__ == "__main__":
    main()
