from shelf.cleaner import clean_episode_name, clean_folder_name, clean_movie_title, extract_series_name


def test_clean_episode_name():
    assert clean_episode_name("My.Show.S01E02.[1080p].mkv") == "My Show"
    assert clean_episode_name("Episode 01.mkv") == ""


def test_series_name_from_siblings():
    files = ["My.Show.S01E01.1080p.mkv", "My.Show.S01E02.1080p.mkv"]
    assert extract_series_name(files) == "My Show"


def test_numeric_title_survives():
    assert extract_series_name(["86 - 01.mkv", "86 - 02.mkv"]) == "86"


def test_trailing_title_number_kept_once_episode_consumed():
    assert extract_series_name(["Mob Psycho 100 - 01.mkv"]) == "Mob Psycho 100"


def test_title_number_before_dash_episode_is_not_an_episode():
    # "Show 2 - 01" is episode 1 of "Show 2", never episode 2 of "Show"
    assert extract_series_name(["Show 2 - 01.mkv", "Show 2 - 02.mkv"]) == "Show 2"
    assert clean_episode_name("Show 2 - 01") == "Show 2"


def test_prefix_cut_back_to_whole_word():
    assert extract_series_name(["Show - Pilot.mkv", "Show - Party.mkv"]) == "Show"


def test_generic_episode_names_give_nothing():
    assert extract_series_name(["Episode 01.mkv", "Episode 02.mkv"]) == ""


def test_clean_folder_name():
    assert clean_folder_name("My Show (2020) [1080p]") == "My Show"
    assert clean_folder_name("My Show Season 2") == "My Show"
    assert clean_folder_name("My_Show Part 2") == "My Show"


def test_clean_movie_title():
    assert clean_movie_title("Your Name (2016).mkv") == "Your Name"
