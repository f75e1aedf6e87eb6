from fastapi.testclient import TestClient

from educatech.main import app

client = TestClient(app)


def _user(role, email):
    r = client.post('/users', json={
        'first_name': 'Grace', 'last_name': 'Hopper', 'email': email,
        'password': 'password123', 'role': role,
    })
    assert r.status_code == 201
    return r.json()


def _course(teacher_id, title='Intro to Python'):
    r = client.post('/courses', json={'title': title, 'description': 'Basics', 'teacher_id': teacher_id})
    assert r.status_code == 201
    return r.json()


def _lesson(course_id, title='Variables', content='# Variables\nNames for values.'):
    return client.post('/lessons', json={'title': title, 'content': content, 'course_id': course_id})


def test_course_creation_requires_teacher_role():
    student = _user('STUDENT', 'stud@example.com')
    r = client.post('/courses', json={'title': 'Math', 'description': 'Numbers', 'teacher_id': student['id']})
    assert r.status_code == 400
    assert r.json()['error'] == 'role_mismatch'

    missing = client.post('/courses', json={'title': 'Math', 'description': 'Numbers', 'teacher_id': 999})
    assert missing.status_code == 404


def test_course_request_validation():
    teacher = _user('TEACHER', 'teach@example.com')
    too_long = client.post('/courses', json={'title': 'x' * 256, 'description': 'd', 'teacher_id': teacher['id']})
    assert too_long.status_code == 400
    assert too_long.json()['error'] == 'invalid_argument'
    blank = client.post('/courses', json={'title': '   ', 'description': 'd', 'teacher_id': teacher['id']})
    assert blank.status_code == 400
    no_teacher = client.post('/courses', json={'title': 'Math', 'description': 'd'})
    assert no_teacher.status_code == 400


def test_search_by_title_is_case_insensitive_substring():
    teacher = _user('TEACHER', 'search@example.com')
    py = _course(teacher['id'], 'Intro to Python')
    _course(teacher['id'], 'Advanced Rust')
    r = client.get('/courses/search', params={'title': 'pYtHo'})
    assert r.status_code == 200
    assert [c['id'] for c in r.json()] == [py['id']]
    assert client.get('/courses/search', params={'title': '%'}).json() == []


def test_list_by_teacher_and_pagination():
    teacher = _user('TEACHER', 'pager@example.com')
    student = _user('STUDENT', 'pager-s@example.com')
    _course(teacher['id'], 'One')
    _course(teacher['id'], 'Two')

    mine = client.get(f"/courses/teacher/{teacher['id']}")
    assert [c['title'] for c in mine.json()] == ['One', 'Two']
    assert client.get(f"/courses/teacher/{student['id']}").status_code == 400

    page = client.get('/courses', params={'page': 1, 'size': 1}).json()
    assert page['total'] == 2
    assert page['page'] == 1
    assert [c['title'] for c in page['items']] == ['Two']
    assert client.get('/courses', params={'size': 0}).status_code == 400
    assert client.get('/courses', params={'page': -1}).status_code == 400


def test_assign_teacher_rejects_noop_reassignment():
    t1 = _user('TEACHER', 't1@example.com')
    t2 = _user('TEACHER', 't2@example.com')
    course = _course(t1['id'])

    same = client.put(f"/courses/{course['id']}/teacher/{t1['id']}")
    assert same.status_code == 409
    assert same.json()['error'] == 'conflict'

    moved = client.put(f"/courses/{course['id']}/teacher/{t2['id']}")
    assert moved.status_code == 200
    assert moved.json()['teacher_id'] == t2['id']


def test_update_course_revalidates_teacher():
    teacher = _user('TEACHER', 'upd@example.com')
    student = _user('STUDENT', 'upd-s@example.com')
    course = _course(teacher['id'])
    r = client.put(f"/courses/{course['id']}", json={'title': 'New', 'description': 'D', 'teacher_id': student['id']})
    assert r.status_code == 400
    ok = client.put(f"/courses/{course['id']}", json={'title': 'New', 'description': 'D', 'teacher_id': teacher['id']})
    assert ok.status_code == 200
    assert ok.json()['title'] == 'New'


def test_delete_course_removes_lessons_and_enrollments():
    teacher = _user('TEACHER', 'del@example.com')
    student = _user('STUDENT', 'del-s@example.com')
    course = _course(teacher['id'])
    lesson = _lesson(course['id']).json()
    enrollment = client.post('/enrollments', json={'user_id': student['id'], 'course_id': course['id']}).json()

    assert client.delete(f"/courses/{course['id']}").status_code == 204
    assert client.get(f"/courses/{course['id']}").status_code == 404
    assert client.get(f"/lessons/{lesson['id']}").status_code == 404
    assert client.get(f"/enrollments/{enrollment['id']}").status_code == 404


def test_lesson_titles_are_unique_per_course():
    teacher = _user('TEACHER', 'lessons@example.com')
    c1 = _course(teacher['id'], 'C1')
    c2 = _course(teacher['id'], 'C2')

    assert _lesson(c1['id']).status_code == 201
    dup = _lesson(c1['id'])
    assert dup.status_code == 409
    assert dup.json()['error'] == 'conflict'
    assert _lesson(c2['id']).status_code == 201


def test_lesson_update_allows_own_title_but_not_anothers():
    teacher = _user('TEACHER', 'lesson-upd@example.com')
    course = _course(teacher['id'])
    first = _lesson(course['id'], 'Loops').json()
    second = _lesson(course['id'], 'Functions').json()

    same = client.put(f"/lessons/{first['id']}", json={'title': 'Loops', 'content': 'updated', 'course_id': course['id']})
    assert same.status_code == 200
    assert same.json()['content'] == 'updated'

    clash = client.put(f"/lessons/{second['id']}", json={'title': 'Loops', 'content': 'x', 'course_id': course['id']})
    assert clash.status_code == 409


def test_lessons_by_course_and_missing_course():
    teacher = _user('TEACHER', 'bycourse@example.com')
    course = _course(teacher['id'])
    _lesson(course['id'], 'A')
    _lesson(course['id'], 'B')
    r = client.get(f"/lessons/course/{course['id']}")
    assert [lesson['title'] for lesson in r.json()] == ['A', 'B']
    assert client.get('/lessons/course/999').status_code == 404
    assert _lesson(999).status_code == 404


def test_lesson_content_limit():
    teacher = _user('TEACHER', 'limit@example.com')
    course = _course(teacher['id'])
    r = _lesson(course['id'], content='x' * 2001)
    assert r.status_code == 400
    assert r.json()['error'] == 'invalid_argument'


def test_delete_lesson():
    teacher = _user('TEACHER', 'rm-lesson@example.com')
    course = _course(teacher['id'])
    lesson = _lesson(course['id']).json()
    assert client.delete(f"/lessons/{lesson['id']}").status_code == 204
    assert client.delete(f"/lessons/{lesson['id']}").status_code == 404
    assert client.get('/lessons').json()['total'] == 0
