from fastapi.testclient import TestClient

from educatech import services
from educatech.main import app

client = TestClient(app)


def _user(role, email):
    r = client.post('/users', json={
        'first_name': 'Ada', 'last_name': 'Lovelace', 'email': email,
        'password': 'password123', 'role': role,
    })
    assert r.status_code == 201
    return r.json()


def _course(teacher_id, title='Intro to Python'):
    r = client.post('/courses', json={'title': title, 'description': 'Basics', 'teacher_id': teacher_id})
    assert r.status_code == 201
    return r.json()


def test_enroll_conflict_and_queries():
    student = _user('STUDENT', 'student@example.com')
    teacher = _user('TEACHER', 'teacher@example.com')
    course = _course(teacher['id'])

    r = client.post('/enrollments', json={'user_id': student['id'], 'course_id': course['id']})
    assert r.status_code == 201
    created = r.json()
    assert created['user_id'] == student['id']
    assert created['course_id'] == course['id']
    assert created['enrollment_date']

    dup = client.post('/enrollments', json={'user_id': student['id'], 'course_id': course['id']})
    assert dup.status_code == 409
    body = dup.json()
    assert body['error'] == 'conflict'
    assert body['status'] == 409
    assert body['path'] == '/enrollments'

    by_course = client.get(f"/enrollments/course/{course['id']}")
    assert by_course.status_code == 200
    assert [e['id'] for e in by_course.json()] == [created['id']]

    by_student = client.get(f"/enrollments/student/{student['id']}")
    assert [e['id'] for e in by_student.json()] == [created['id']]

    pair = client.get(f"/enrollments/student/{student['id']}/course/{course['id']}")
    assert pair.status_code == 200
    assert pair.json()['id'] == created['id']

    page = client.get('/enrollments', params={'page': 0, 'size': 10})
    assert page.status_code == 200
    assert page.json()['total'] == 1


def test_unenroll_then_pair_lookup_is_404():
    student = _user('STUDENT', 's2@example.com')
    course = _course(_user('TEACHER', 't2@example.com')['id'])
    created = client.post('/enrollments', json={'user_id': student['id'], 'course_id': course['id']}).json()

    r = client.delete(f"/enrollments/{created['id']}")
    assert r.status_code == 204
    assert client.get(f"/enrollments/{created['id']}").status_code == 404
    pair = client.get(f"/enrollments/student/{student['id']}/course/{course['id']}")
    assert pair.status_code == 404
    assert pair.json()['error'] == 'not_found'


def test_enroll_teacher_is_role_mismatch():
    teacher = _user('TEACHER', 't3@example.com')
    course = _course(teacher['id'])
    r = client.post('/enrollments', json={'user_id': teacher['id'], 'course_id': course['id']})
    assert r.status_code == 400
    assert r.json()['error'] == 'role_mismatch'


def test_non_positive_ids_are_invalid_argument():
    r = client.post('/enrollments', json={'user_id': 0, 'course_id': 1})
    assert r.status_code == 400
    assert r.json()['error'] == 'invalid_argument'
    for path in ('/enrollments/0', '/enrollments/student/-1', '/enrollments/course/0', '/enrollments/student/0/course/1'):
        resp = client.get(path)
        assert resp.status_code == 400, path
        assert resp.json()['error'] == 'invalid_argument'
    assert client.delete('/enrollments/-4').status_code == 400


def test_client_supplied_enrollment_date_is_ignored():
    student = _user('STUDENT', 's4@example.com')
    course = _course(_user('TEACHER', 't4@example.com')['id'])
    r = client.post('/enrollments', json={
        'user_id': student['id'], 'course_id': course['id'], 'enrollment_date': '1999-01-01T00:00:00',
    })
    assert r.status_code == 201
    assert not r.json()['enrollment_date'].startswith('1999')


def test_update_enrollment_moves_to_new_course():
    student = _user('STUDENT', 's5@example.com')
    teacher = _user('TEACHER', 't5@example.com')
    c1 = _course(teacher['id'], 'Physics')
    c2 = _course(teacher['id'], 'Biology')
    created = client.post('/enrollments', json={'user_id': student['id'], 'course_id': c1['id']}).json()

    r = client.put(f"/enrollments/{created['id']}", json={'user_id': student['id'], 'course_id': c2['id']})
    assert r.status_code == 200
    assert r.json()['course_id'] == c2['id']
    assert r.json()['enrollment_date'] == created['enrollment_date']


def test_unexpected_errors_are_reported_generically(monkeypatch):
    def boom(self, course_id):
        raise RuntimeError("db password=hunter2 leaked")

    monkeypatch.setattr(services.EnrollmentService, "get_by_course", boom)
    safe_client = TestClient(app, raise_server_exceptions=False)
    r = safe_client.get('/enrollments/course/1')
    assert r.status_code == 500
    assert r.json()['error'] == 'internal_error'
    assert r.json()['detail'] == 'An unexpected internal server error occurred.'
    assert 'hunter2' not in r.text


def test_request_id_is_echoed():
    r = client.get('/enrollments', headers={'X-Request-ID': 'abc123'})
    assert r.headers['X-Request-ID'] == 'abc123'
