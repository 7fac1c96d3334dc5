import pytest

from ingestion_errors import InvalidBatch
from movie_file_parser import parse_movies_file


def test_json_array_file():
    content = b'[{"title": "A", "duration": 90}, {"title": "B"}]'
    movies = parse_movies_file(content, "movies.json")
    assert movies == [{"title": "A", "duration": 90}, {"title": "B"}]


def test_json_detected_without_extension():
    assert parse_movies_file(b'  [{"title": "A"}]', None) == [{"title": "A"}]


@pytest.mark.parametrize("content", [b'{"title": "A"}', b'[{"title": ', b'\xff\xfe'])
def test_bad_json_file_is_invalid_batch(content):
    with pytest.raises(InvalidBatch):
        parse_movies_file(content, "movies.json")


def test_csv_file_with_aliases_and_blank_cells():
    content = (
        b"Name,Overview,Release Date,Runtime,Rating,Poster,Unused\n"
        b"Heat,Cops and robbers,1995-12-15,170,8.3,,x\n"
        b"Alien,In space,1979-05-25,117,8.5,https://img.example/alien.jpg,y\n"
    )
    movies = parse_movies_file(content, "movies.csv")
    assert movies == [
        {
            "title": "Heat",
            "description": "Cops and robbers",
            "releaseDate": "1995-12-15",
            "duration": "170",
            "rating": "8.3",
            "poster": None,
        },
        {
            "title": "Alien",
            "description": "In space",
            "releaseDate": "1979-05-25",
            "duration": "117",
            "rating": "8.5",
            "poster": "https://img.example/alien.jpg",
        },
    ]


def test_csv_streaming_links_cell_kept_as_text():
    content = (
        b'title,streamingLinks\n'
        b'Heat,"[{""platform"": ""Netflix"", ""url"": ""https://n.example""}]"\n'
    )
    movies = parse_movies_file(content, "movies.csv")
    assert movies[0]["streamingLinks"] == '[{"platform": "Netflix", "url": "https://n.example"}]'


def test_csv_without_title_column_is_invalid_batch():
    with pytest.raises(InvalidBatch):
        parse_movies_file(b"foo,bar\n1,2\n", "movies.csv")
