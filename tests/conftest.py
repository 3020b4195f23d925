import os
import asyncio

import pytest
import uvloop


# Never reach a real text-generation provider or a developer's storage folder from tests.
os.environ["OPENAI_API_KEY"] = ""
os.environ["AZURE_OPENAI_API_KEY"] = ""
os.environ["STORAGE_DIR"] = os.path.join(os.path.dirname(__file__), "_missing_storage")

# This environment blocks writes to the default asyncio selector wakeup socket.
# uvloop uses a different mechanism that keeps TestClient responsive.
asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

from lexium.loader import Dataset, load_dataset  # noqa: E402

STUDENTS_CSV = "NOMBRE,PARALELO,AUTOESTIMA\nAna Ruiz,A,80\nBeto Paz,B,30\n"

CLASS_CSV = (
    "NOMBRE;PARALELO;EDAD;AUTOESTIMA;MATEMATICA;LECTURA\n"
    "Ana Ruiz;A;14;80;95;40\n"
    "Beto Paz;B;15;30;55;72\n"
    "Carla Nuñez;A;14;65;71;20\n"
    "Diego Ñandú;B;15;65;;88\n"
    "Elena Ruiz Soto;A;13;90;35,5;60\n"
)


@pytest.fixture
def students() -> Dataset:
    return load_dataset(STUDENTS_CSV)


@pytest.fixture
def classroom() -> Dataset:
    return load_dataset(CLASS_CSV)
